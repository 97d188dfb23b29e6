import pytest

from treechunk import model_storage
from treechunk.config import ChunkerConfig


def test_defaults():
    config = ChunkerConfig()
    assert config.outside_tag == "O"
    assert config.intern_tags is True
    assert config.span_layer == "chunk"
    assert config.download_model is False


def test_from_dict():
    config = ChunkerConfig.from_dict({"language": "de", "variant": "le", "outside_tag": None})
    assert config.language == "de"
    assert config.outside_tag is None


def test_from_dict_rejects_unknown_options():
    with pytest.raises(ValueError, match="bogus"):
        ChunkerConfig.from_dict({"language": "en", "bogus": 1})


def test_with_user_defaults():
    model_storage.write_config(
        {"treetagger_executable": "/opt/tt/bin/tree-tagger", "default_download_model": True}
    )
    config = ChunkerConfig().with_user_defaults()
    assert config.executable_path == "/opt/tt/bin/tree-tagger"
    assert config.download_model is True

    explicit = ChunkerConfig(executable_path="/usr/bin/tree-tagger").with_user_defaults()
    assert explicit.executable_path == "/usr/bin/tree-tagger"


def test_with_user_defaults_without_config():
    config = ChunkerConfig()
    assert config.with_user_defaults() is config


def test_log_verbosity_is_not_a_config_option():
    with pytest.raises(ValueError, match="debug"):
        ChunkerConfig.from_dict({"debug": True})
