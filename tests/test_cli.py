"""
Tests for CLI commands — run, config check, resolve, and global options.
"""

import json
import sys
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from provisioner.adapters.mock import (
    MockApplier,
    MockFetcher,
    MockInstaller,
    MockResolver,
    MockRestorer,
)
from provisioner.core.errors import InstallError, InstallErrorKind
from provisioner.core.use_cases.provision import (
    EXIT_CANCELLED,
    EXIT_CONFIG_ERROR,
    Components,
    run_provision,
)
from provisioner.core.use_cases.resolve import resolve_executable
from provisioner.main import cli


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "Image provisioner" in result.output
        for command in ("run", "config", "resolve"):
            assert command in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output


class TestRunCommand:
    def test_help_lists_exit_codes(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["run", "--help"])
        assert result.exit_code == 0
        # click re-wraps the paragraph, so only match single words
        for fragment in ("bootstrapped", "bootstrapping", "130", "(SIGTERM", "Ctrl-C)."):
            assert fragment in result.output

    def test_dry_run(self, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "run", "--dry-run"])
        assert result.exit_code == 0, result.output
        assert "[dry-run]" in result.output
        assert "✓ bootstrap" in result.output
        assert "✓ cleanup_post" in result.output

    def test_dry_run_json(self, config_file: Path, work_root: Path):
        runner = CliRunner()
        result = runner.invoke(
            cli, ["-q", "--config", str(config_file), "run", "--dry-run", "--json"]
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["exit_code"] == 0
        assert data["dry_run"] is True
        stages = [s["stage"] for s in data["report"]["stages"]]
        assert stages[0] == "init"
        assert stages[-1] == "terminal"
        assert data["report"]["fatal"] is None
        assert not (work_root / "provisioner-work").exists()

    def test_work_root_override(self, config_file: Path, tmp_path: Path):
        other = tmp_path / "elsewhere"
        runner = CliRunner()
        result = runner.invoke(
            cli,
            ["-q", "--config", str(config_file), "run", "--dry-run", "--json",
             "--work-root", str(other)],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["report"]["work_dir"] == str(other / "provisioner-work")

    def test_bootstrap_failure_exits_1(self, config_file: Path, artifacts_dir: Path):
        (artifacts_dir / "UIFramework.appx").unlink()
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "run", "--dry-run"])
        assert result.exit_code == 1
        assert "bootstrap failed" in result.output
        assert "⊘ config_apply" in result.output

    def test_package_manager_unreachable_exits_1(
        self, config_file: Path, artifacts_dir: Path, work_root: Path
    ):
        (artifacts_dir / "PackageManager.msixbundle").unlink()
        runner = CliRunner()
        # -q still lets the ERROR lines through; keep stderr out of the JSON
        result = runner.invoke(
            cli,
            ["--config", str(config_file), "run", "--dry-run", "--json"],
            env={"PROVISIONER_LOG_LEVEL": "CRITICAL"},
        )
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["report"]["fatal"]["stage"] == "bootstrap"
        assert "package_manager" in data["report"]["fatal"]["diagnostic"]
        assert not (work_root / "provisioner-work").exists()

    def test_missing_config_exits_2(self, tmp_path: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(tmp_path / "nope.yml"), "run"])
        assert result.exit_code == 2
        assert "not found" in result.output

    def test_negative_settle_rejected(self, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "run", "--settle", "-1"])
        assert result.exit_code == 2


class TestConfigCheckCommand:
    def test_valid(self, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(config_file), "config", "check"])
        assert result.exit_code == 0
        assert "Configuration is valid" in result.output
        assert "settle_seconds is 0" in result.output

    def test_json(self, config_file: Path):
        runner = CliRunner()
        result = runner.invoke(cli, ["-q", "--config", str(config_file), "config", "check", "--json"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["valid"] is True

    def test_invalid(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text("provision:\n  bootstrap: {}\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(path), "config", "check"])
        assert result.exit_code == 1
        assert "Configuration errors" in result.output


class TestResolveCommand:
    def _config(self, tmp_path: Path, config_file: Path, executable: str, path: str) -> Path:
        # Nested under the existing top-level ``provision:`` key.
        extra = textwrap.indent(
            f"commands:\n  executable: {executable}\n  executable_path: '{path}'\n",
            "  ",
        )
        target = tmp_path / "resolve.yml"
        target.write_text(config_file.read_text() + extra)
        return target

    def test_found(self, tmp_path: Path, config_file: Path):
        exe = Path(sys.executable)
        path = self._config(tmp_path, config_file, exe.name, str(exe))
        runner = CliRunner()
        result = runner.invoke(cli, ["-q", "--config", str(path), "resolve", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["found"] is True
        assert data["executable"] == str(exe)

    def test_absent(self, tmp_path: Path, config_file: Path):
        path = self._config(tmp_path, config_file, "definitely-missing-pm", "")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(path), "resolve"])
        assert result.exit_code == 0
        assert "Fallback: definitely-missing-pm" in result.output

    def test_bad_config(self, tmp_path: Path):
        path = tmp_path / "provision.yml"
        path.write_text("- not\n- a mapping\n")
        runner = CliRunner()
        result = runner.invoke(cli, ["--config", str(path), "resolve"])
        assert result.exit_code == 2


# ── Use cases ────────────────────────────────────────────────────────


def _mock_components(journal: list[str]) -> Components:
    return Components(
        fetcher=MockFetcher(journal),
        installer=MockInstaller(journal),
        restorer=MockRestorer(journal),
        resolver=MockResolver(journal),
        applier=MockApplier(journal),
    )


class TestRunProvision:
    def test_success(self, config_file: Path, journal: list[str]):
        result = run_provision(config_file, components=_mock_components(journal))
        assert result.error is None
        assert result.exit_code == 0
        assert result.report.status == "ok"
        assert journal[-1] == "apply:/opt/pm/winget"

    def test_settle_override(self, config_file: Path, journal: list[str]):
        sleeps: list[float] = []
        run_provision(
            config_file,
            settle_seconds=12,
            components=_mock_components(journal),
            sleep=sleeps.append,
        )
        assert sleeps == [12]

    def test_fatal(self, config_file: Path, journal: list[str]):
        components = _mock_components(journal)
        components.installer.set_failure(
            "Framework.appx", InstallError(InstallErrorKind.INVALID_PACKAGE, "corrupt")
        )
        result = run_provision(config_file, components=components)
        assert result.exit_code == 1
        assert result.to_dict()["report"]["fatal"]["stage"] == "bootstrap"

    def test_config_error(self, tmp_path: Path):
        result = run_provision(tmp_path / "missing.yml")
        assert result.exit_code == EXIT_CONFIG_ERROR
        assert "error" in result.to_dict()

    def test_cancelled(self, config_file: Path, journal: list[str]):
        components = _mock_components(journal)

        def interrupted(trigger=None):
            raise KeyboardInterrupt

        components.restorer.restore = interrupted
        result = run_provision(config_file, components=components)
        assert result.exit_code == EXIT_CANCELLED
        assert result.report.cancelled


class TestResolveExecutable:
    def test_uses_given_resolver(self, config_file: Path):
        result = resolve_executable(config_file, resolver=MockResolver.absent(fallback="pm"))
        assert result.to_dict() == {
            "found": False,
            "executable": "pm",
            "reason": "not installed",
            "config_path": str(config_file),
        }

    def test_defaults_without_config(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setattr(
            "provisioner.core.use_cases.resolve.find_config_file", lambda: None
        )
        result = resolve_executable(resolver=MockResolver())
        assert result.error is None
        assert result.config_path is None
        assert result.resolution.found
