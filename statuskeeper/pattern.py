"""Glob-style pattern matching for endpoint keys."""

from __future__ import annotations

import os
from dataclasses import dataclass

_SEPARATOR = os.sep
_BACKSLASH_ESCAPES = _SEPARATOR != "\\"


class _BadPattern(ValueError):
    """Raised internally when a pattern is malformed."""


class _Star:
    pass


class _AnyChar:
    pass


_STAR = _Star()
_ANY = _AnyChar()


@dataclass(frozen=True)
class _CharClass:
    negated: bool
    ranges: tuple[tuple[str, str], ...]

    def accepts(self, char: str) -> bool:
        inside = any(lo <= char <= hi for lo, hi in self.ranges)
        return inside != self.negated


def _class_char(pattern: str, index: int) -> tuple[str, int]:
    if index >= len(pattern) or pattern[index] in "-]":
        raise _BadPattern(pattern)
    char = pattern[index]
    if char == "\\" and _BACKSLASH_ESCAPES:
        index += 1
        if index >= len(pattern):
            raise _BadPattern(pattern)
        char = pattern[index]
    return char, index + 1


def _parse_class(pattern: str, index: int) -> tuple[_CharClass, int]:
    negated = False
    if index < len(pattern) and pattern[index] == "^":
        negated = True
        index += 1
    ranges: list[tuple[str, str]] = []
    while True:
        if index < len(pattern) and pattern[index] == "]" and ranges:
            return _CharClass(negated, tuple(ranges)), index + 1
        low, index = _class_char(pattern, index)
        high = low
        if index < len(pattern) and pattern[index] == "-":
            high, index = _class_char(pattern, index + 1)
        ranges.append((low, high))


def _tokenize(pattern: str) -> list:
    tokens: list = []
    index = 0
    while index < len(pattern):
        char = pattern[index]
        if char == "*":
            tokens.append(_STAR)
            index += 1
        elif char == "?":
            tokens.append(_ANY)
            index += 1
        elif char == "[":
            char_class, index = _parse_class(pattern, index + 1)
            tokens.append(char_class)
        elif char == "\\" and _BACKSLASH_ESCAPES:
            if index + 1 >= len(pattern):
                raise _BadPattern(pattern)
            tokens.append(pattern[index + 1])
            index += 2
        else:
            tokens.append(char)
            index += 1
    return tokens


def _accepts(token, char: str) -> bool:
    if token is _ANY:
        return True
    if isinstance(token, _CharClass):
        return token.accepts(char)
    return token == char


def _matches(tokens: list, s: str) -> bool:
    positions = {0}
    for token in tokens:
        if token is _STAR:
            positions = set(range(min(positions), len(s) + 1))
        else:
            positions = {
                position + 1
                for position in positions
                if position < len(s) and _accepts(token, s[position])
            }
        if not positions:
            return False
    return len(s) in positions


def match(pattern: str, s: str) -> bool:
    """Return whether ``s`` matches the shell-style ``pattern``.

    Path separators are stripped from both sides before matching, and a
    malformed pattern never matches.
    """
    if pattern == "*":
        return True
    s = s.replace(_SEPARATOR, "")
    pattern = pattern.replace(_SEPARATOR, "")
    try:
        tokens = _tokenize(pattern)
    except _BadPattern:
        return False
    return _matches(tokens, s)