"""
Error taxonomy — typed failures raised by pipeline components.

Each component raises exactly one error family. The orchestrator
catches them at the stage boundary and decides, per stage, whether
the failure is fatal or a warning. Environment resolution has no
error type: "not found" is the ``Absent`` value, not an exception.
"""

from __future__ import annotations

from enum import StrEnum


class ProvisionError(Exception):
    """Base class for component failures.

    Attributes:
        kind: Failure category (a member of the subclass's kind enum).
        message: Human-readable detail.
    """

    def __init__(self, kind: StrEnum, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message

    def __str__(self) -> str:
        return f"{self.kind.value}: {self.message}"

    def to_dict(self) -> dict:
        return {
            "error": self.__class__.__name__,
            "kind": self.kind.value,
            "message": self.message,
        }


# ── Fetch ───────────────────────────────────────────────────────


class FetchErrorKind(StrEnum):
    NETWORK_UNREACHABLE = "network_unreachable"
    HTTP_ERROR = "http_error"
    WRITE_ERROR = "write_error"


class FetchError(ProvisionError):
    """An artifact could not be retrieved or written."""

    def __init__(
        self,
        kind: FetchErrorKind,
        message: str,
        *,
        locator: str = "",
        status: int | None = None,
    ) -> None:
        super().__init__(kind, message)
        self.locator = locator
        self.status = status

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["locator"] = self.locator
        if self.status is not None:
            data["status"] = self.status
        return data


# ── Install ─────────────────────────────────────────────────────


class InstallErrorKind(StrEnum):
    INVALID_PACKAGE = "invalid_package"
    REGISTRATION_REJECTED = "registration_rejected"
    ALREADY_INSTALLED_CONFLICT = "already_installed_conflict"


class InstallError(ProvisionError):
    """The OS refused to register a package."""

    def __init__(
        self,
        kind: InstallErrorKind,
        message: str,
        *,
        package: str = "",
    ) -> None:
        super().__init__(kind, message)
        self.package = package

    @property
    def is_conflict(self) -> bool:
        """Already-installed conflicts are tolerated by the pipeline."""
        return self.kind == InstallErrorKind.ALREADY_INSTALLED_CONFLICT

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["package"] = self.package
        return data


# ── Restore ─────────────────────────────────────────────────────


class RestoreErrorKind(StrEnum):
    TRIGGER_FAILED = "trigger_failed"


class RestoreError(ProvisionError):
    """The service restore trigger could not be issued."""

    def __init__(self, message: str, *, trigger: list[str] | None = None) -> None:
        super().__init__(RestoreErrorKind.TRIGGER_FAILED, message)
        self.trigger = list(trigger or [])


# ── Apply ───────────────────────────────────────────────────────


class ApplyErrorKind(StrEnum):
    EXECUTABLE_NOT_FOUND = "executable_not_found"
    INVOCATION_FAILED = "invocation_failed"
    DOCUMENT_UNREADABLE = "document_unreadable"


class ApplyError(ProvisionError):
    """The package manager could not apply the configuration document."""

    def __init__(
        self,
        kind: ApplyErrorKind,
        message: str,
        *,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(kind, message)
        self.exit_code = exit_code

    def to_dict(self) -> dict:
        data = super().to_dict()
        if self.exit_code is not None:
            data["exit_code"] = self.exit_code
        return data
