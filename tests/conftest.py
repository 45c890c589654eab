# ruff: noqa: E402

import sys
from pathlib import Path

import pytest
from _pytest.doctest import DoctestModule

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

import branchtix.log as branchtix_log

DOCTEST_MODULES = {
    ROOT / "src" / "branchtix" / "__init__.py",
    ROOT / "src" / "branchtix" / "codec.py",
    ROOT / "src" / "branchtix" / "config.py",
    ROOT / "src" / "branchtix" / "git.py",
    ROOT / "src" / "branchtix" / "io.py",
    ROOT / "src" / "branchtix" / "models.py",
    ROOT / "src" / "branchtix" / "paths.py",
}


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    monkeypatch.setenv("BRANCHTIX_DATA_DIR", str(tmp_path / "data"))
    monkeypatch.delenv("BRANCHTIX_BRANCH", raising=False)
    monkeypatch.delenv("BRANCHTIX_GIT", raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    branchtix_log.set_level("warning")
    branchtix_log.set_no_color(False)


def pytest_collect_file(
    parent: pytest.Collector, file_path: Path
) -> DoctestModule | None:
    path = file_path if isinstance(file_path, Path) else Path(str(file_path))
    if path in DOCTEST_MODULES:
        return DoctestModule.from_parent(parent, path=path)
    return None
