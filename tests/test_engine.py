import pytest

from treechunk import model_storage
from treechunk.doc import Token
from treechunk.engine import DEFAULT_ARGS, END_MARKER, START_MARKER, TreeTaggerProcess, resolve_executable
from treechunk.errors import EngineProcessError
from treechunk.models import ModelKey, load_model
from treechunk.tag_mapping import TagSubstitution


def tokens(*pairs):
    return [Token(id=i, form=form, xpos=xpos) for i, (form, xpos) in enumerate(pairs, start=1)]


@pytest.fixture
def model(models_dir):
    return load_model(ModelKey("en", "le"), models_dir=models_dir)


@pytest.fixture
def engine(fake_tagger, model):
    process = TreeTaggerProcess(fake_tagger)
    process.configure(model)
    yield process
    process.close()


def test_resolve_explicit_executable(fake_tagger):
    assert resolve_executable(fake_tagger) == fake_tagger.resolve()


def test_resolve_missing_explicit_executable(tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))
    with pytest.raises(EngineProcessError, match="not found"):
        resolve_executable(tmp_path / "missing-tagger")


def test_resolve_from_treetagger_home(fake_tagger, tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))
    monkeypatch.setenv("TREETAGGER_HOME", str(fake_tagger.parent.parent))
    assert resolve_executable() == fake_tagger.resolve()


def test_resolve_from_user_config(fake_tagger, tmp_path, monkeypatch):
    monkeypatch.setenv("PATH", str(tmp_path / "empty"))
    model_storage.set_executable_path(str(fake_tagger))
    assert resolve_executable() == fake_tagger.resolve()


def test_resolve_from_path(fake_tagger, monkeypatch):
    monkeypatch.setenv("PATH", str(fake_tagger.parent))
    assert resolve_executable() == fake_tagger.resolve()


def test_command_line(fake_tagger, model):
    process = TreeTaggerProcess(fake_tagger, extra_args=["-proto", "-quiet"])
    process.model = model
    cmd = process.command()
    assert cmd[0] == str(fake_tagger.resolve())
    assert cmd[1:1 + len(DEFAULT_ARGS)] == DEFAULT_ARGS
    assert cmd.count("-quiet") == 1
    assert "-proto" in cmd
    assert cmd[-1] == str(model.model_path)


def test_command_requires_model(fake_tagger):
    with pytest.raises(EngineProcessError):
        TreeTaggerProcess(fake_tagger).command()


def test_tags_one_sentence(engine):
    result = list(engine.iter_tags(tokens(("The", "DT"), ("dog", "NN"), ("barks", "VBZ"), (".", "."))))
    assert [tag for _, tag in result] == ["DT/B-NP", "NN/I-NP", "VBZ/B-VP", "./O"]
    assert [token.form for token, _ in result] == ["The", "dog", "barks", "."]


def test_consecutive_sentences_skip_flush_output(engine):
    first = [tag for _, tag in engine.iter_tags(tokens(("He", "PRP"), ("runs", "VBZ")))]
    second = [tag for _, tag in engine.iter_tags(tokens(("in", "IN"), ("parks", "NNS")))]
    third = [tag for _, tag in engine.iter_tags(tokens(("Yes", "UH"),))]
    assert first == ["PRP/B-NP", "VBZ/B-VP"]
    assert second == ["IN/B-PP", "NNS/B-NP"]
    assert third == ["UH/O"]
    assert engine.is_alive


def test_process_calls_handler_per_token(engine):
    seen = []
    engine.process(tokens(("cats", "NNS"), ("sleep", "VB")), lambda token, tag: seen.append((token.form, tag)))
    assert seen == [("cats", "NNS/B-NP"), ("sleep", "VB/B-VP")]


def test_input_lines_and_substitution(fake_tagger, model, tagger_log):
    with TreeTaggerProcess(fake_tagger) as process:
        process.configure(model, substitutions=TagSubstitution({"$.": "SENT"}), flush_sequence=".-SENT\n" * 3)
        list(process.iter_tags(tokens(("Hi", "UH"), (".", "$."))))
    lines = tagger_log.read_text(encoding="utf-8").splitlines()
    assert lines[:4] == [START_MARKER, "Hi-UH", ".-SENT", END_MARKER]
    assert lines[4] == ".-SENT"


def test_empty_sentence_sends_nothing(engine):
    assert list(engine.iter_tags([])) == []


@pytest.mark.parametrize(
    "form, xpos",
    [("two\nlines", "NN"), ("tab\there", "NN"), ("<note", "x>"), ("", "NN"), ("  ", "NN")],
)
def test_sanity_checks(engine, form, xpos):
    with pytest.raises(EngineProcessError):
        list(engine.iter_tags([Token(id=1, form=form, xpos=xpos)]))
    assert engine.is_alive


def test_performance_mode_skips_checks(fake_tagger, model, monkeypatch):
    process = TreeTaggerProcess(fake_tagger, performance_mode=True)
    monkeypatch.setattr(process, "_check_lines", lambda *args: pytest.fail("checks ran"))
    process.configure(model)
    try:
        assert [tag for _, tag in process.iter_tags(tokens(("dogs", "NNS"),))] == ["NNS/B-NP"]
    finally:
        process.close()


def test_crash_raises_with_exit_code(fake_tagger, model, monkeypatch):
    monkeypatch.setenv("FAKE_TAGGER_CRASH_AFTER", "2")
    with TreeTaggerProcess(fake_tagger) as process:
        process.configure(model)
        received = []
        with pytest.raises(EngineProcessError, match="exit code 3") as excinfo:
            for token, tag in process.iter_tags(tokens(("a", "DT"), ("big", "JJ"), ("dog", "NN"), ("ran", "VB"))):
                received.append(tag)
        assert "fake tagger crashed" in str(excinfo.value)
        assert received == ["DT/B-NP", "JJ/I-NP"]
        assert not process.is_alive


def test_close_stops_process(fake_tagger, model):
    process = TreeTaggerProcess(fake_tagger)
    process.configure(model)
    assert process.is_alive
    process.close()
    assert not process.is_alive
    with pytest.raises(EngineProcessError):
        list(process.iter_tags(tokens(("a", "DT"),)))


def test_configure_restarts_process(engine, model):
    first = engine._process
    engine.configure(model)
    assert engine._process is not first
    assert engine.is_alive


def test_noisy_stderr_does_not_block_tagging(fake_tagger, model, monkeypatch):
    monkeypatch.setenv("FAKE_TAGGER_STDERR_BYTES", "200000")
    with TreeTaggerProcess(fake_tagger) as process:
        process.configure(model)
        for _ in range(3):
            result = [tag for _, tag in process.iter_tags(tokens(("dogs", "NNS"), ("run", "VB")))]
            assert result == ["NNS/B-NP", "VB/B-VP"]
        assert process.is_alive


def test_crash_message_keeps_stderr_tail(fake_tagger, model, monkeypatch):
    monkeypatch.setenv("FAKE_TAGGER_STDERR_BYTES", "200000")
    monkeypatch.setenv("FAKE_TAGGER_CRASH_AFTER", "0")
    with TreeTaggerProcess(fake_tagger) as process:
        process.configure(model)
        with pytest.raises(EngineProcessError, match="fake tagger crashed") as excinfo:
            list(process.iter_tags(tokens(("a", "DT"), ("dog", "NN"))))
    assert str(excinfo.value).count("warning:") < 100


def test_closed_output_while_reading_is_engine_error(engine):
    tags = engine.iter_tags(tokens(("big", "JJ"), ("dogs", "NNS"), ("ran", "VB")))
    assert next(tags)[1] == "JJ/B-NP"
    engine._process.stdout.close()
    with pytest.raises(EngineProcessError, match="closed"):
        next(tags)
