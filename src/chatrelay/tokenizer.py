"""Quoted word scanner for command arguments.

Words are separated by unicode whitespace. Single or double quotes group
characters (including spaces and ``=``) into a word, and an unquoted ``=``
turns a word into a ``key=value`` pair, encoded internally by joining key and
value with ``MARKER``.
"""

from __future__ import annotations

from collections.abc import Iterator

from .errors import ParseError

MARKER = "\x05"
SEPARATOR = "="
QUOTES = frozenset({"'", '"'})

_SPACES = frozenset(" \t\n\v\f\r") | frozenset(
    map(chr, (0x85, 0xA0, 0x1680, 0x2028, 0x2029, 0x202F, 0x205F, 0x3000))
)


def is_space(char: str) -> bool:
    if char in _SPACES:
        return True
    return 0x2000 <= ord(char) <= 0x200A


def has_marker(token: str) -> bool:
    return MARKER in token


def split_marker(token: str) -> tuple[str, str]:
    key, _, value = token.partition(MARKER)
    return key, value


def scan_quoted_words(data: str, at_eof: bool) -> tuple[int, str | None]:
    """Scan the next word from ``data``.

    Returns ``(advance, token)``. ``token`` is ``None`` when more input is
    needed (or, at end of input, when only whitespace is left); ``advance`` is
    the offset to resume from.
    """
    start = 0
    while start < len(data) and is_space(data[start]):
        start += 1

    token: list[str] = []
    seen_separator = False
    quotes: list[str] = []
    for index in range(start, len(data)):
        char = data[index]

        if char == MARKER:
            raise ParseError("argument contains a reserved marker character")

        if char in QUOTES:
            if quotes and quotes[-1] == char:
                quotes.pop()
            else:
                quotes.append(char)
            continue

        if quotes:
            token.append(char)
            continue

        if char == SEPARATOR:
            if seen_separator:
                raise ParseError("double separator")
            seen_separator = True
            token.append(MARKER)
            continue

        if is_space(char):
            return index + 1, "".join(token)

        token.append(char)

    if at_eof and len(data) > start:
        if quotes:
            raise ParseError("unbalanced quotes")
        return len(data), "".join(token)

    return start, None


def iter_tokens(text: str) -> Iterator[str]:
    offset = 0
    while offset < len(text):
        advance, token = scan_quoted_words(text[offset:], at_eof=True)
        if token is None:
            return
        offset += advance
        yield token


def split_quoted_words(text: str) -> list[str]:
    return list(iter_tokens(text))
