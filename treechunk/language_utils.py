from __future__ import annotations

import re
from typing import Optional

import pycountry

_SUBTAG_SPLIT = re.compile(r"[-_]")

# ISO codes are matched before names: pycountry's lookup() also matches names,
# and some two-letter codes ("en") are names of other ISO 639-3 languages.
_LANGUAGE_BY_CODE = {}
_LANGUAGE_BY_NAME = {}
for _lang in pycountry.languages:
    for _attr in ("alpha_2", "alpha_3", "bibliographic", "terminology"):
        _code = getattr(_lang, _attr, None)
        if _code:
            _LANGUAGE_BY_CODE.setdefault(_code.lower(), _lang)
    for _attr in ("name", "common_name", "inverted_name"):
        _name = getattr(_lang, _attr, None)
        if _name:
            _LANGUAGE_BY_NAME.setdefault(_name.lower(), _lang)


def _lookup_language(value: str):
    key = value.lower()
    if key in _LANGUAGE_BY_CODE:
        return _LANGUAGE_BY_CODE[key]
    if key in _LANGUAGE_BY_NAME:
        return _LANGUAGE_BY_NAME[key]
    try:
        return pycountry.languages.lookup(value)
    except LookupError:
        return None


def normalize_language(language: Optional[str]) -> Optional[str]:
    """
    Normalize a language identifier to the code used in model file names.

    Accepts ISO 639-1/639-3 codes, BCP 47 tags ("en-US") and English names
    ("German"). Returns the ISO 639-1 code where one exists, the ISO 639-3 code
    otherwise, and the lower-cased primary subtag for unknown identifiers.
    """
    if not language:
        return None
    value = language.strip()
    if not value:
        return None
    primary = _SUBTAG_SPLIT.split(value, 1)[0]
    for candidate in dict.fromkeys((value, primary)):
        entry = _lookup_language(candidate)
        if entry is not None:
            return getattr(entry, "alpha_2", None) or entry.alpha_3
    return primary.lower()
