"""Reader for Java-style ``.properties`` files (model metadata, chunk mappings)."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, Iterable, Iterator, Tuple

_ESCAPE = re.compile(r"\\(u[0-9a-fA-F]{4}|.)", re.DOTALL)
_SIMPLE_ESCAPES = {"n": "\n", "t": "\t", "r": "\r", "f": "\f"}

# java.util.Properties reads ISO-8859-1; other characters come as \uXXXX escapes.
PROPERTIES_ENCODING = "iso-8859-1"


def _unescape(value: str) -> str:
    def _sub(match: re.Match) -> str:
        code = match.group(1)
        if len(code) == 5 and code.startswith("u"):
            return chr(int(code[1:], 16))
        return _SIMPLE_ESCAPES.get(code, code)

    return _ESCAPE.sub(_sub, value)


def _logical_lines(lines: Iterable[str]) -> Iterator[str]:
    buffer = ""
    continued = False
    for raw in lines:
        line = raw.lstrip() if continued else raw.strip()
        if not continued and (not line or line[0] in "#!"):
            continue
        trailing = len(line) - len(line.rstrip("\\"))
        if trailing % 2 == 1:
            buffer += line[:-1]
            continued = True
            continue
        yield buffer + line
        buffer = ""
        continued = False
    if buffer:
        yield buffer


def _split_key_value(line: str) -> Tuple[str, str]:
    # The key ends at the first unescaped '=', ':' or whitespace
    index = 0
    while index < len(line):
        char = line[index]
        if char == "\\":
            index += 2
            continue
        if char in "=:" or char.isspace():
            break
        index += 1
    key = line[:index]
    rest = line[index:].lstrip(" \t\f")
    if rest[:1] in ("=", ":"):
        rest = rest[1:].lstrip(" \t\f")
    return key, rest


def parse_properties(text: str) -> Dict[str, str]:
    """Parse the contents of a properties file into an ordered dict."""
    properties: Dict[str, str] = {}
    for line in _logical_lines(text.splitlines()):
        key, value = _split_key_value(line)
        properties[_unescape(key)] = _unescape(value)
    return properties


def read_properties(path: Path | str, encoding: str = PROPERTIES_ENCODING) -> Dict[str, str]:
    with open(path, "r", encoding=encoding) as handle:
        return parse_properties(handle.read())
