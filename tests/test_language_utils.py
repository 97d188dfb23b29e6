import pytest

from treechunk.language_utils import normalize_language


@pytest.mark.parametrize(
    "value, expected",
    [
        ("en", "en"),
        ("EN", "en"),
        ("eng", "en"),
        ("English", "en"),
        ("de-DE", "de"),
        ("deu", "de"),
        ("pt_BR", "pt"),
    ],
)
def test_normalize_known_languages(value, expected):
    assert normalize_language(value) == expected


@pytest.mark.parametrize("value", [None, "", "   "])
def test_normalize_empty(value):
    assert normalize_language(value) is None


def test_unknown_language_keeps_primary_subtag():
    assert normalize_language("ZZ-unknown") == "zz"


@pytest.mark.parametrize("value", ["en", "EN", "en-GB"])
def test_codes_win_over_language_names(value):
    # pycountry lists an ISO 639-3 language named "En" (enc); lookup("en") alone
    # returns it on recent pycountry releases.
    assert normalize_language(value) == "en"


def test_terminology_and_bibliographic_codes():
    assert normalize_language("ger") == "de"
    assert normalize_language("fre") == "fr"
    assert normalize_language("fra") == "fr"
