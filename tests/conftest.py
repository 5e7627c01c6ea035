"""
Shared test fixtures and configuration.

Artifacts are real files served through ``file://`` URLs, so the
real fetcher can be exercised without a network.
"""

import logging
import textwrap
from pathlib import Path

import pytest

from provisioner.core.config.loader import parse_config
from provisioner.core.models.config import ProvisionConfig


@pytest.fixture(autouse=True)
def _restore_root_logger():
    """setup_logging replaces root handlers; put pytest's back afterwards."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in list(root.handlers):
        if handler not in handlers:
            root.removeHandler(handler)
            handler.close()
    for handler in handlers:
        if handler not in root.handlers:
            root.addHandler(handler)
    root.setLevel(level)


@pytest.fixture
def artifacts_dir(tmp_path: Path) -> Path:
    """A 'remote' directory holding the three packages and the document."""
    remote = tmp_path / "remote"
    remote.mkdir()
    (remote / "Framework.appx").write_bytes(b"framework-package")
    (remote / "UIFramework.appx").write_bytes(b"ui-framework-package")
    (remote / "PackageManager.msixbundle").write_bytes(b"package-manager-bundle")
    (remote / "configuration.dsc.yaml").write_text(
        "properties:\n  configurationVersion: 0.2.0\n  resources: []\n"
    )
    return remote


@pytest.fixture
def work_root(tmp_path: Path) -> Path:
    root = tmp_path / "scratch"
    root.mkdir()
    return root


@pytest.fixture
def config_data(artifacts_dir: Path, work_root: Path) -> dict:
    return {
        "work_root": str(work_root),
        "settle_seconds": 30,
        "bootstrap": {
            "framework": {"url": (artifacts_dir / "Framework.appx").as_uri()},
            "ui_framework": {"url": (artifacts_dir / "UIFramework.appx").as_uri()},
            "package_manager": {"url": (artifacts_dir / "PackageManager.msixbundle").as_uri()},
        },
        "configuration": {"url": (artifacts_dir / "configuration.dsc.yaml").as_uri()},
    }


@pytest.fixture
def config(config_data: dict) -> ProvisionConfig:
    return parse_config(config_data)


@pytest.fixture
def config_file(tmp_path: Path, artifacts_dir: Path, work_root: Path) -> Path:
    """A provision.yml on disk pointing at the file:// artifacts."""
    content = textwrap.dedent(f"""\
        provision:
          work_root: {work_root.as_posix()}
          settle_seconds: 0
          bootstrap:
            framework:
              url: {(artifacts_dir / "Framework.appx").as_uri()}
            ui_framework:
              url: {(artifacts_dir / "UIFramework.appx").as_uri()}
            package_manager:
              url: {(artifacts_dir / "PackageManager.msixbundle").as_uri()}
          configuration:
            url: {(artifacts_dir / "configuration.dsc.yaml").as_uri()}
    """)
    path = tmp_path / "provision.yml"
    path.write_text(content)
    return path


@pytest.fixture
def journal() -> list[str]:
    """Shared call journal for recording doubles."""
    return []
