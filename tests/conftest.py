import sys
from pathlib import Path

import pytest

from tests.fixtures.documents import write_model

FAKE_TAGGER_SOURCE = Path(__file__).parent / "fixtures" / "fake_tree_tagger.py"


@pytest.fixture(autouse=True)
def isolated_config(tmp_path, monkeypatch):
    """Keep tests away from the user's ~/.treechunk and environment."""
    config_dir = tmp_path / "config"
    monkeypatch.setenv("TREECHUNK_CONFIG_DIR", str(config_dir))
    for name in (
        "TREECHUNK_MODELS_DIR",
        "TREECHUNK_MODEL_REGISTRY_URL",
        "TREETAGGER_HOME",
        "FAKE_TAGGER_CRASH_AFTER",
        "FAKE_TAGGER_LOG",
        "FAKE_TAGGER_STDERR_BYTES",
    ):
        monkeypatch.delenv(name, raising=False)
    return config_dir


@pytest.fixture
def models_dir(tmp_path) -> Path:
    directory = tmp_path / "models"
    write_model(directory)
    return directory


@pytest.fixture
def fake_tagger(tmp_path) -> Path:
    """Executable fake TreeTagger running under the current interpreter."""
    executable = tmp_path / "bin" / "tree-tagger"
    executable.parent.mkdir(parents=True, exist_ok=True)
    executable.write_text(
        f"#!{sys.executable}\n" + FAKE_TAGGER_SOURCE.read_text(encoding="utf-8"),
        encoding="utf-8",
    )
    executable.chmod(0o755)
    return executable


@pytest.fixture
def tagger_log(tmp_path, monkeypatch) -> Path:
    log = tmp_path / "tagger-input.log"
    monkeypatch.setenv("FAKE_TAGGER_LOG", str(log))
    return log
