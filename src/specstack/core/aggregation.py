"""Read-only aggregation of branch state across a multi-repo layout.

Each repository (the root and every linked child) is summarized on a worker
thread. A repository that fails to detect, load, or finish in time is recorded
as an AggregationFailure; the others are still returned.
"""

import logging
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor, wait
from dataclasses import dataclass
from pathlib import Path

from specstack.core.branch_store.store import BranchStore
from specstack.core.branch_store.types import BranchEntry, BranchStatus
from specstack.core.errors import ContextError, SpecStackError
from specstack.core.git.abc import Git
from specstack.core.graph import Chain, compute_chains
from specstack.core.health import HealthReport, check_health
from specstack.core.repo_context import (
    RepoContext,
    RepoContextDetector,
    RepoMode,
    find_child_repos,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RepoSummary:
    name: str
    repo_root: Path
    mode: RepoMode
    parent_spec_id: str | None
    entries: tuple[BranchEntry, ...]
    status_counts: dict[str, int]
    spec_ids: tuple[str, ...]
    chains: tuple[Chain, ...]
    health: HealthReport | None = None

    @property
    def branch_count(self) -> int:
        return len(self.entries)


@dataclass(frozen=True)
class AggregationFailure:
    name: str
    repo_root: Path | None
    error: str


@dataclass(frozen=True)
class AggregatedView:
    root: RepoSummary | None
    children: dict[str, RepoSummary]
    failures: tuple[AggregationFailure, ...]

    @property
    def summaries(self) -> list[RepoSummary]:
        root = [self.root] if self.root is not None else []
        return root + list(self.children.values())


def count_statuses(entries: tuple[BranchEntry, ...]) -> dict[str, int]:
    """Counts for every status present, in lifecycle order."""
    counts: dict[str, int] = {}
    for status in BranchStatus:
        n = sum(1 for e in entries if e.status is status)
        if n:
            counts[status.value] = n
    return counts


def summarize_repo(
    name: str,
    context: RepoContext,
    store: BranchStore,
    health_git: Git | None = None,
) -> RepoSummary:
    mapping = store.load(context.repo_root)
    entries = mapping.branches if mapping is not None else ()
    spec_ids: list[str] = []
    for entry in entries:
        if entry.spec_id not in spec_ids:
            spec_ids.append(entry.spec_id)

    health = None
    if health_git is not None and mapping is not None:
        health = check_health(health_git, context.repo_root, mapping)

    return RepoSummary(
        name=name,
        repo_root=context.repo_root,
        mode=context.mode,
        parent_spec_id=context.parent_spec_id,
        entries=entries,
        status_counts=count_statuses(entries),
        spec_ids=tuple(spec_ids),
        chains=tuple(compute_chains(mapping)) if mapping is not None else (),
        health=health,
    )


def aggregate(
    root_context: RepoContext,
    detector: RepoContextDetector,
    store: BranchStore,
    *,
    max_workers: int,
    timeout_seconds: float,
    health_git: Git | None = None,
) -> AggregatedView:
    """Summarize the root and every linked child repository.

    Never raises for a single repository's failure.

    Raises:
        ContextError: If root_context is not a specification root
    """
    if root_context.mode is RepoMode.MULTI_REPO_CHILD:
        raise ContextError(
            f"{root_context.repo_root} is a child repository; "
            f"aggregate from the spec root at {root_context.speck_root}"
        )

    children = find_child_repos(root_context.speck_root)
    failures: list[AggregationFailure] = [
        AggregationFailure(name=name, repo_root=None, error=reason)
        for name, reason in children.broken.items()
    ]

    def summarize_child(name: str, path: Path) -> RepoSummary:
        context = detector.detect(path)
        if context.mode is not RepoMode.MULTI_REPO_CHILD:
            raise ContextError(f"{path} is linked as '{name}' but has no .speck/root link")
        return summarize_repo(name, context, store, health_git)

    # (is_root, name, path, job)
    jobs: list[tuple[bool, str, Path, Callable[[], RepoSummary]]] = [
        (
            True,
            root_context.repo_name,
            root_context.repo_root,
            lambda: summarize_repo(root_context.repo_name, root_context, store, health_git),
        )
    ]
    for name, path in children.found.items():
        jobs.append((False, name, path, lambda name=name, path=path: summarize_child(name, path)))

    executor = ThreadPoolExecutor(max_workers=max(1, min(max_workers, len(jobs))))
    futures: dict[Future[RepoSummary], tuple[bool, str, Path]] = {}
    try:
        for is_root, name, path, job in jobs:
            futures[executor.submit(job)] = (is_root, name, path)
        _done, not_done = wait(futures, timeout=timeout_seconds)
    finally:
        # Do not block on hung workers; their results are discarded
        executor.shutdown(wait=False, cancel_futures=True)

    root_summary: RepoSummary | None = None
    child_summaries: dict[str, RepoSummary] = {}
    for future, (is_root, name, path) in futures.items():
        if future in not_done:
            logger.warning("Aggregation of %s timed out after %ss", name, timeout_seconds)
            failures.append(
                AggregationFailure(
                    name=name, repo_root=path, error=f"timed out after {timeout_seconds}s"
                )
            )
            continue
        error = future.exception()
        if error is not None:
            if isinstance(error, (SpecStackError, OSError)):
                logger.warning("Aggregation of %s failed: %s", name, error)
            else:
                logger.warning("Unexpected error aggregating %s", name, exc_info=error)
            failures.append(AggregationFailure(name=name, repo_root=path, error=str(error)))
            continue
        if is_root:
            root_summary = future.result()
        else:
            child_summaries[name] = future.result()

    # Children in link order for stable output
    ordered_children = {
        name: child_summaries[name] for name in children.found if name in child_summaries
    }
    return AggregatedView(
        root=root_summary,
        children=ordered_children,
        failures=tuple(failures),
    )
