import tomllib
from dataclasses import dataclass
from pathlib import Path

DEFAULT_GIT_TIMEOUT_SECONDS = 5.0
DEFAULT_AGGREGATE_MAX_WORKERS = 8
DEFAULT_AGGREGATE_TIMEOUT_SECONDS = 10.0


@dataclass(frozen=True)
class LoadedConfig:
    """In-memory representation of repository configuration.

    Combines `[tool.specstack]` in pyproject.toml with `.speck/config.toml`.
    """

    trunk_branch: str | None
    git_timeout_seconds: float
    aggregate_max_workers: int
    aggregate_timeout_seconds: float

    @staticmethod
    def defaults() -> "LoadedConfig":
        return LoadedConfig(
            trunk_branch=None,
            git_timeout_seconds=DEFAULT_GIT_TIMEOUT_SECONDS,
            aggregate_max_workers=DEFAULT_AGGREGATE_MAX_WORKERS,
            aggregate_timeout_seconds=DEFAULT_AGGREGATE_TIMEOUT_SECONDS,
        )


def read_trunk_from_pyproject(repo_root: Path) -> str | None:
    """Read trunk branch configuration from pyproject.toml.

    Args:
        repo_root: Path to the repository root directory

    Returns:
        Configured trunk branch name, or None if not configured
    """
    pyproject_path = repo_root / "pyproject.toml"

    if not pyproject_path.exists():
        return None

    with pyproject_path.open("rb") as f:
        data = tomllib.load(f)

    tool_section = data.get("tool")
    if tool_section is None:
        return None

    specstack_section = tool_section.get("specstack")
    if specstack_section is None:
        return None

    trunk = specstack_section.get("trunk_branch")
    return str(trunk) if trunk is not None else None


def load_config(repo_root: Path | None) -> LoadedConfig:
    """Load configuration for a repository if present; otherwise return defaults.

    Example `.speck/config.toml`:
      [git]
      timeout_seconds = 5

      [aggregate]
      max_workers = 8
      timeout_seconds = 10

    Raises:
        ValueError: If a configured number is not positive
    """
    if repo_root is None:
        return LoadedConfig.defaults()

    trunk_branch = read_trunk_from_pyproject(repo_root)

    cfg_path = repo_root / ".speck" / "config.toml"
    data = {}
    if cfg_path.exists():
        data = tomllib.loads(cfg_path.read_text(encoding="utf-8"))

    git_section = data.get("git", {})
    aggregate_section = data.get("aggregate", {})

    git_timeout = float(git_section.get("timeout_seconds", DEFAULT_GIT_TIMEOUT_SECONDS))
    max_workers = int(aggregate_section.get("max_workers", DEFAULT_AGGREGATE_MAX_WORKERS))
    aggregate_timeout = float(
        aggregate_section.get("timeout_seconds", DEFAULT_AGGREGATE_TIMEOUT_SECONDS)
    )

    for key, value in (
        ("git.timeout_seconds", git_timeout),
        ("aggregate.max_workers", max_workers),
        ("aggregate.timeout_seconds", aggregate_timeout),
    ):
        if value <= 0:
            raise ValueError(f"{key} must be positive in {cfg_path} (got {value})")

    return LoadedConfig(
        trunk_branch=trunk_branch,
        git_timeout_seconds=git_timeout,
        aggregate_max_workers=max_workers,
        aggregate_timeout_seconds=aggregate_timeout,
    )
