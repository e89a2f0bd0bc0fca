from pathlib import Path

import pytest

from tests.test_utils.repo_setup import make_repo


@pytest.fixture
def repo(tmp_path: Path) -> Path:
    """A standalone repository with two specs."""
    return make_repo(tmp_path, "repo", ("001-auth", "002-billing"))


@pytest.fixture
def single_spec_repo(tmp_path: Path) -> Path:
    return make_repo(tmp_path, "solo", ("003-search",))
