"""
Mock components — recording test doubles for every pipeline seam.

Each mock records its calls and can be told to fail for a given
input. Mocks built with the same ``journal`` list append
``"<component>:<detail>"`` entries to it, so a test can assert the
global call order across components.
"""

from __future__ import annotations

import subprocess
from collections.abc import Mapping, Sequence
from pathlib import Path

from provisioner.adapters.shell.command import CommandResult, CommandRunner
from provisioner.core.errors import ApplyError, FetchError, InstallError, RestoreError
from provisioner.core.models.resolution import Absent, Resolution, ResolvedExecutable


class _Recorder:
    def __init__(self, component: str, journal: list[str] | None = None):
        self._component = component
        self._journal = journal if journal is not None else []

    @property
    def journal(self) -> list[str]:
        return self._journal

    def _note(self, detail: str) -> None:
        self._journal.append(f"{self._component}:{detail}")


class MockRunner(CommandRunner):
    """Command runner that never starts a process.

    By default every command exits 0. ``set_result`` scripts a result
    for commands whose program (argv[0]) matches; ``set_missing``
    makes a program raise FileNotFoundError; ``set_timeout`` makes it
    raise TimeoutExpired.
    """

    def __init__(self):
        super().__init__(dry_run=False)
        self.calls: list[list[str]] = []
        self.spawned: list[list[str]] = []
        self.envs: list[Mapping[str, str] | None] = []
        self._results: dict[str, CommandResult] = {}
        self._missing: set[str] = set()
        self._timeouts: set[str] = set()

    def set_result(self, program: str, returncode: int, stdout: str = "", stderr: str = "") -> None:
        self._results[program] = CommandResult(
            argv=[program], returncode=returncode, stdout=stdout, stderr=stderr
        )

    def set_missing(self, program: str) -> None:
        self._missing.add(program)

    def set_timeout(self, program: str) -> None:
        self._timeouts.add(program)

    def run(
        self,
        argv: Sequence[str],
        *,
        timeout: float | None = None,
        env: Mapping[str, str] | None = None,
    ) -> CommandResult:
        argv_list = [str(a) for a in argv]
        self.calls.append(argv_list)
        self.envs.append(env)
        program = argv_list[0]
        if program in self._missing:
            raise FileNotFoundError(2, "No such file or directory", program)
        if program in self._timeouts:
            raise subprocess.TimeoutExpired(argv_list, timeout or 0)
        scripted = self._results.get(program)
        if scripted is not None:
            return CommandResult(
                argv=argv_list,
                returncode=scripted.returncode,
                stdout=scripted.stdout,
                stderr=scripted.stderr,
            )
        return CommandResult(argv=argv_list, returncode=0)

    def spawn(self, argv: Sequence[str], *, env: Mapping[str, str] | None = None) -> int:
        argv_list = [str(a) for a in argv]
        self.spawned.append(argv_list)
        if argv_list[0] in self._missing:
            raise FileNotFoundError(2, "No such file or directory", argv_list[0])
        return 4242


class MockFetcher(_Recorder):
    """Writes placeholder content instead of downloading."""

    def __init__(self, journal: list[str] | None = None, content: bytes = b"artifact"):
        super().__init__("fetch", journal)
        self.fetched: list[str] = []
        self._content = content
        self._failures: dict[str, FetchError] = {}

    def set_failure(self, locator: str, error: FetchError) -> None:
        self._failures[locator] = error

    def fetch(self, locator: str, destination: Path | str) -> None:
        self.fetched.append(locator)
        self._note(locator)
        if locator in self._failures:
            raise self._failures[locator]
        Path(destination).write_bytes(self._content)


class MockInstaller(_Recorder):
    """Records package registration order by file name."""

    def __init__(self, journal: list[str] | None = None):
        super().__init__("install", journal)
        self.installed: list[str] = []
        self._failures: dict[str, InstallError] = {}

    def set_failure(self, filename: str, error: InstallError) -> None:
        self._failures[filename] = error

    def install(self, package_path: Path | str) -> None:
        name = Path(package_path).name
        self.installed.append(name)
        self._note(name)
        if name in self._failures:
            raise self._failures[name]


class MockRestorer(_Recorder):
    def __init__(self, journal: list[str] | None = None, error: RestoreError | None = None):
        super().__init__("restore", journal)
        self.calls = 0
        self._error = error

    def restore(self, trigger: Sequence[str] | None = None) -> int:
        self.calls += 1
        self._note("trigger")
        if self._error is not None:
            raise self._error
        return 4242


class MockResolver(_Recorder):
    """Returns a fixed resolution (found by default)."""

    def __init__(
        self,
        journal: list[str] | None = None,
        resolution: Resolution | None = None,
        error: Exception | None = None,
    ):
        super().__init__("resolve", journal)
        self.calls = 0
        self._resolution = resolution or ResolvedExecutable(path="/opt/pm/winget")
        self._error = error

    @classmethod
    def absent(cls, journal: list[str] | None = None, fallback: str = "winget") -> MockResolver:
        return cls(journal, resolution=Absent(fallback=fallback, reason="not installed"))

    def resolve(self) -> Resolution:
        self.calls += 1
        self._note("resolve")
        if self._error is not None:
            raise self._error
        return self._resolution


class MockApplier(_Recorder):
    def __init__(self, journal: list[str] | None = None, error: ApplyError | None = None):
        super().__init__("apply", journal)
        self.calls: list[tuple[str, str, bool]] = []
        self._error = error

    def apply(
        self,
        executable: Resolution,
        config_document: Path | str,
        *,
        accept_agreements: bool = True,
    ) -> None:
        self.calls.append((executable.locator, str(config_document), accept_agreements))
        self._note(executable.locator)
        if self._error is not None:
            raise self._error
