"""
Executable resolution — where the freshly installed package manager lives.

Resolution has two explicit outcomes. ``ResolvedExecutable`` carries the
path that was found; ``Absent`` carries the bare name to fall back on.
Both carry the merged environment the child process should run with.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ResolvedExecutable:
    """The executable was found at ``path``."""

    path: str
    environment: dict[str, str] = field(default_factory=dict)

    @property
    def locator(self) -> str:
        return self.path

    @property
    def found(self) -> bool:
        return True


@dataclass(frozen=True)
class Absent:
    """The executable was not found; invoke ``fallback`` through OS lookup."""

    fallback: str
    reason: str = ""
    environment: dict[str, str] = field(default_factory=dict)

    @property
    def locator(self) -> str:
        return self.fallback

    @property
    def found(self) -> bool:
        return False


Resolution = ResolvedExecutable | Absent
