"""Git operations subpackage.

This subpackage provides abstractions over git operations with support for
testing via fakes.
"""

from specstack.core.git.abc import Git
from specstack.core.git.fake import FakeGit
from specstack.core.git.real import RealGit

__all__ = [
    "Git",
    "RealGit",
    "FakeGit",
]
