"""
Tests for observability — logging setup, run ID stamping, and CLI level selection.
"""

import logging
from pathlib import Path

import pytest
from click.testing import CliRunner

from provisioner.adapters.mock import MockApplier, MockFetcher, MockInstaller, MockResolver, MockRestorer
from provisioner.core.engine import Pipeline
from provisioner.core.models import ProvisionConfig
from provisioner.core.observability.logging_config import LEVEL_ENV, RunIdFilter, bind_run_id, setup_logging
from provisioner.main import cli


class TestSetupLogging:
    def test_default_level_is_info(self):
        setup_logging()
        assert logging.getLogger().level == logging.INFO

    def test_replaces_existing_handlers(self):
        setup_logging("WARNING")
        setup_logging("WARNING")
        console = [
            h for h in logging.getLogger().handlers
            if type(h) is logging.StreamHandler
        ]
        assert len(console) == 1

    def test_unknown_level_falls_back_to_info(self):
        setup_logging("CHATTY")
        assert logging.getLogger().level == logging.INFO

    def test_file_handler(self, tmp_path: Path):
        log_file = tmp_path / "logs" / "provision.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="DEBUG")

        root = logging.getLogger()
        assert root.level == logging.DEBUG
        logging.getLogger("provisioner.test").debug("detail for the file")
        for handler in root.handlers:
            handler.flush()

        assert "detail for the file" in log_file.read_text(encoding="utf-8")

    def test_third_party_quieted(self):
        setup_logging("INFO")
        assert logging.getLogger("urllib3").level == logging.WARNING


def _record() -> logging.LogRecord:
    return logging.LogRecord("provisioner.test", logging.INFO, __file__, 1, "msg", None, None)


class TestRunId:
    def test_outside_a_run(self):
        record = _record()
        RunIdFilter().filter(record)
        assert record.run_id == "-"

    def test_bound_and_restored(self):
        with bind_run_id("prov-test-1"):
            inside = _record()
            RunIdFilter().filter(inside)
        outside = _record()
        RunIdFilter().filter(outside)
        assert inside.run_id == "prov-test-1"
        assert outside.run_id == "-"

    def test_pipeline_lines_carry_run_id(self, config: ProvisionConfig, tmp_path: Path):
        log_file = tmp_path / "provision.log"
        setup_logging("WARNING", log_file=str(log_file), log_file_level="INFO")
        pipeline = Pipeline(
            config,
            fetcher=MockFetcher(),
            installer=MockInstaller(),
            restorer=MockRestorer(),
            resolver=MockResolver(),
            applier=MockApplier(),
            sleep=lambda s: None,
            run_id="prov-test-2",
        )
        pipeline.run()
        logging.getLogger("provisioner.test").info("after the run")
        for handler in logging.getLogger().handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        assert any("[prov-test-2] provisioner.core.engine.orchestrator" in line for line in lines)
        assert "[-] provisioner.test" in lines[-1]


class TestCLILogLevel:
    def _invoke(self, *args: str) -> int:
        CliRunner().invoke(cli, [*args, "config", "--help"])
        return logging.getLogger().level

    def test_debug_flag(self):
        assert self._invoke("--debug") == logging.DEBUG

    def test_quiet_flag(self):
        assert self._invoke("--quiet") == logging.ERROR

    def test_env_var(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(LEVEL_ENV, "WARNING")
        assert self._invoke() == logging.WARNING

    def test_flag_beats_env_var(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv(LEVEL_ENV, "ERROR")
        assert self._invoke("--verbose") == logging.INFO
