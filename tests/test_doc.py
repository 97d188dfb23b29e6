from treechunk.doc import Document, Sentence, Span, Token


def test_span_type_defaults_to_label_in_dict():
    assert Span("NP", 0, 3, "NP").to_dict() == {"label": "NP", "start": 0, "end": 3}
    assert Span("NP", 0, 3, "NounPhrase").to_dict()["type"] == "NounPhrase"


def test_document_from_dict():
    data = {
        "id": "d1",
        "text": "Dogs bark",
        "attrs": {"lang": "en"},
        "sentences": [
            {
                "id": "s1",
                "tokens": [
                    {"id": 1, "form": "Dogs", "xpos": "NNS", "char_start": 0, "char_end": 4},
                    {"id": 2, "form": "bark", "xpos": "VBZ", "char_start": 5, "char_end": 9},
                ],
            }
        ],
        "spans": {"chunk": [{"label": "NP", "start": 0, "end": 4}]},
    }
    document = Document.from_dict(data)
    assert document.language == "en"
    assert [token.form for token in document.tokens()] == ["Dogs", "bark"]
    assert list(document.iter_spans("chunk")) == [Span("NP", 0, 4)]
    assert Document.from_dict(document.to_dict()).to_dict() == document.to_dict()


def test_language_from_meta():
    assert Document(meta={"language": "de"}).language == "de"
    assert Document().language is None


def test_ordered_tokens():
    sentence = Sentence(
        id="s1",
        tokens=[
            Token(id=2, form="b", char_start=2, char_end=3),
            Token(id=1, form="a", char_start=0, char_end=1),
        ],
    )
    assert [token.id for token in sentence.ordered_tokens()] == [1, 2]


def test_add_and_iter_spans():
    document = Document()
    document.add_span("chunk", Span("NP", 0, 3))
    document.add_span("other", Span("X", 4, 5))
    assert [span.label for span in document.iter_spans()] == ["NP", "X"]
    assert [span.label for span in document.iter_spans("chunk")] == ["NP"]
