"""
Tests for core models — artifacts, configuration, stage results, resolution.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from provisioner.core.errors import (
    ApplyError,
    ApplyErrorKind,
    FetchError,
    FetchErrorKind,
    InstallError,
    InstallErrorKind,
    RestoreError,
)
from provisioner.core.models import (
    Absent,
    ArtifactSource,
    ProvisionConfig,
    ResolvedExecutable,
    Stage,
    StageResult,
)
from provisioner.core.models.artifact import check_url
from provisioner.core.models.config import BOOTSTRAP_ORDER, DEFAULT_INSTALL_COMMAND
from provisioner.core.models.result import FATAL_STAGES

# ── Artifacts ────────────────────────────────────────────────────────


class TestCheckUrl:
    @pytest.mark.parametrize(
        "url",
        ["https://example.com/a.appx", "http://mirror.local/a.appx", "file:///tmp/a.appx"],
    )
    def test_supported_schemes(self, url: str):
        assert check_url(url) == url

    def test_strips_whitespace(self):
        assert check_url("  https://example.com/x  ") == "https://example.com/x"

    def test_empty_rejected(self):
        with pytest.raises(ValueError, match="must not be empty"):
            check_url("   ")

    def test_unsupported_scheme(self):
        with pytest.raises(ValueError, match="unsupported URL scheme 'ftp'"):
            check_url("ftp://example.com/a.appx")

    def test_no_scheme(self):
        with pytest.raises(ValueError, match="<none>"):
            check_url("example.com/a.appx")


class TestArtifactSource:
    def test_filename_from_url(self):
        src = ArtifactSource(name="framework", url="https://example.com/dl/VCLibs.x64.appx?sig=1")
        assert src.resolved_filename == "VCLibs.x64.appx"

    def test_filename_unquoted(self):
        src = ArtifactSource(name="pm", url="https://example.com/My%20Bundle.msixbundle")
        assert src.resolved_filename == "My Bundle.msixbundle"

    def test_explicit_filename_wins(self):
        src = ArtifactSource(name="pm", url="https://aka.ms/getwinget", filename="pm.msixbundle")
        assert src.resolved_filename == "pm.msixbundle"

    def test_falls_back_to_name(self):
        src = ArtifactSource(name="pm", url="https://example.com/")
        assert src.resolved_filename == "pm"

    @pytest.mark.parametrize("filename", ["../escaped.appx", "sub/a.appx", r"..\a.appx", ".."])
    def test_filename_must_be_plain(self, filename: str):
        with pytest.raises(ValidationError, match="plain file name"):
            ArtifactSource(name="framework", url="https://example.com/f.appx", filename=filename)

    @pytest.mark.parametrize("url", ["https://example.com/dl/..", "https://example.com/..%5Cevil.appx"])
    def test_url_segment_must_be_plain(self, url: str):
        with pytest.raises(ValidationError, match="plain file name"):
            ArtifactSource(name="framework", url=url)

    def test_to_artifact(self, tmp_path: Path):
        src = ArtifactSource(name="framework", url="https://example.com/f.appx")
        artifact = src.to_artifact(tmp_path)
        assert artifact.name == "framework"
        assert artifact.source == "https://example.com/f.appx"
        assert artifact.path == tmp_path / "f.appx"

    def test_artifact_is_frozen(self, tmp_path: Path):
        artifact = ArtifactSource(name="a", url="https://example.com/a").to_artifact(tmp_path)
        with pytest.raises(ValidationError):
            artifact.name = "b"


# ── Configuration ────────────────────────────────────────────────────


class TestProvisionConfig:
    def test_defaults(self, config: ProvisionConfig):
        assert config.version == 1
        assert config.settle_seconds == 30
        assert config.commands.install == DEFAULT_INSTALL_COMMAND
        assert config.commands.restore == ["wsreset.exe", "-i"]
        assert config.commands.executable == "winget"
        assert config.timeouts.fetch == 300
        assert config.timeouts.apply is None
        assert config.configuration.accept_agreements is True

    def test_bootstrap_names_default_to_role(self, config: ProvisionConfig):
        assert [a.name for a in config.bootstrap.ordered()] == list(BOOTSTRAP_ORDER)

    def test_bare_url_entries(self):
        config = ProvisionConfig.model_validate({
            "bootstrap": {
                "framework": "https://example.com/f.appx",
                "ui_framework": "https://example.com/u.appx",
                "package_manager": "https://example.com/p.msixbundle",
            },
            "configuration": "https://example.com/c.dsc.yaml",
        })
        assert config.bootstrap.framework.name == "framework"
        assert config.bootstrap.package_manager.resolved_filename == "p.msixbundle"
        assert config.configuration.url == "https://example.com/c.dsc.yaml"

    def test_document_filename_must_be_plain(self, config_data: dict):
        config_data["configuration"]["filename"] = "../configuration.dsc.yaml"
        with pytest.raises(ValidationError, match="plain file name"):
            ProvisionConfig.model_validate(config_data)

    def test_work_dir(self, config: ProvisionConfig, work_root: Path):
        assert config.work_dir == work_root / "provisioner-work"

    def test_uris(self, config: ProvisionConfig):
        uris = config.uris()
        assert list(uris) == ["framework", "ui_framework", "package_manager", "configuration"]
        assert all(u.startswith("file://") for u in uris.values())

    def test_missing_url_rejected(self, config_data: dict):
        del config_data["bootstrap"]["ui_framework"]
        with pytest.raises(ValidationError):
            ProvisionConfig.model_validate(config_data)

    def test_negative_settle_rejected(self, config_data: dict):
        config_data["settle_seconds"] = -1
        with pytest.raises(ValidationError, match="settle_seconds"):
            ProvisionConfig.model_validate(config_data)

    @pytest.mark.parametrize("name", ["", "..", "a/b"])
    def test_work_dir_name_must_be_plain(self, config_data: dict, name: str):
        config_data["work_dir_name"] = name
        with pytest.raises(ValidationError):
            ProvisionConfig.model_validate(config_data)

    def test_empty_install_command_rejected(self, config_data: dict):
        config_data["commands"] = {"install": []}
        with pytest.raises(ValidationError, match="must not be empty"):
            ProvisionConfig.model_validate(config_data)


# ── Stage results ────────────────────────────────────────────────────


class TestStageResult:
    def test_success(self):
        r = StageResult.success(Stage.INIT)
        assert r.ok
        assert not r.failed
        assert not r.fatal
        assert r.started_at

    def test_failure_in_fatal_stage(self):
        r = StageResult.failure(Stage.BOOTSTRAP, "boom")
        assert r.failed
        assert r.fatal
        assert r.diagnostic == "boom"

    def test_failure_in_warning_stage(self):
        r = StageResult.failure(Stage.CONFIG_APPLY, "boom")
        assert r.failed
        assert not r.fatal

    def test_skip(self):
        r = StageResult.skip(Stage.ENV_REFRESH, "bootstrap failed")
        assert r.outcome == "skipped"
        assert not r.ok and not r.failed

    def test_fatal_stages(self):
        assert FATAL_STAGES == {Stage.INIT, Stage.CLEANUP_PRE, Stage.BOOTSTRAP}

    def test_stage_order(self):
        assert [s.value for s in Stage] == [
            "init",
            "cleanup_pre",
            "bootstrap",
            "service_restore",
            "env_refresh",
            "config_apply",
            "cleanup_post",
            "terminal",
        ]


# ── Resolution ───────────────────────────────────────────────────────


class TestResolution:
    def test_resolved(self):
        r = ResolvedExecutable(path="/opt/pm/winget")
        assert r.found
        assert r.locator == "/opt/pm/winget"

    def test_absent(self):
        r = Absent(fallback="winget", reason="not on PATH")
        assert not r.found
        assert r.locator == "winget"


# ── Errors ───────────────────────────────────────────────────────────


class TestErrors:
    def test_fetch_error(self):
        e = FetchError(FetchErrorKind.HTTP_ERROR, "HTTP 404", locator="https://x", status=404)
        assert str(e) == "http_error: HTTP 404"
        assert e.status == 404
        assert e.to_dict()["kind"] == "http_error"

    def test_install_conflict(self):
        e = InstallError(InstallErrorKind.ALREADY_INSTALLED_CONFLICT, "newer present")
        assert e.is_conflict
        assert not InstallError(InstallErrorKind.INVALID_PACKAGE, "bad").is_conflict

    def test_restore_error(self):
        e = RestoreError("cannot start", trigger=["wsreset.exe", "-i"])
        assert "cannot start" in str(e)

    def test_apply_error(self):
        e = ApplyError(ApplyErrorKind.INVOCATION_FAILED, "exit 3", exit_code=3)
        assert e.exit_code == 3
        assert e.kind == ApplyErrorKind.INVOCATION_FAILED
