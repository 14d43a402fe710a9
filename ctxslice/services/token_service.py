"""Tokenization and set-similarity helpers used for ranking code blocks."""

from __future__ import annotations

import re
from typing import AbstractSet, Iterable

_CAMEL_BOUNDARY_RE = re.compile(r"([a-z0-9])([A-Z])")
_NON_WORD_RE = re.compile(r"[_\W]+")
_TITLE_SPLIT_RE = re.compile(r"[^a-z0-9_]+")

# Keywords, runtime globals and filler words that carry no signal when
# comparing code blocks.
CODE_STOPWORDS = frozenset(
    {
        "and",
        "any",
        "args",
        "arguments",
        "array",
        "async",
        "await",
        "be",
        "boolean",
        "break",
        "by",
        "case",
        "catch",
        "class",
        "console",
        "const",
        "constructor",
        "continue",
        "default",
        "delete",
        "do",
        "else",
        "eql",
        "equal",
        "exports",
        "expect",
        "extends",
        "false",
        "finally",
        "fn",
        "for",
        "from",
        "function",
        "have",
        "if",
        "import",
        "in",
        "instanceof",
        "is",
        "it",
        "json",
        "length",
        "let",
        "log",
        "math",
        "module",
        "new",
        "null",
        "number",
        "object",
        "of",
        "on",
        "or",
        "parse",
        "pm",
        "require",
        "res",
        "response",
        "return",
        "should",
        "static",
        "string",
        "super",
        "switch",
        "test",
        "that",
        "the",
        "then",
        "this",
        "throw",
        "to",
        "true",
        "try",
        "typeof",
        "undefined",
        "value",
        "var",
        "void",
        "while",
        "with",
        "yield",
    }
)


def split_camel_snake(text: str) -> list[str]:
    """Split camelCase, snake_case and punctuation-separated words."""

    spaced = _CAMEL_BOUNDARY_RE.sub(r"\1 \2", text)
    spaced = _NON_WORD_RE.sub(" ", spaced)
    return [part for part in spaced.split() if part]


def dedupe_tokens(tokens: Iterable[str]) -> list[str]:
    """Drop repeated tokens while keeping first-seen order."""

    seen: set[str] = set()
    out: list[str] = []
    for token in tokens:
        if token in seen:
            continue
        seen.add(token)
        out.append(token)
    return out


def cut_tokenize(raw: str | None, stopwords: AbstractSet[str] = CODE_STOPWORDS) -> list[str]:
    """Tokenize *raw* on case and punctuation boundaries.

    Tokens are lowercased, single characters and stopwords are dropped, and
    duplicates are removed preserving order.
    """

    if not raw:
        return []
    words = (word.lower() for word in split_camel_snake(raw))
    return dedupe_tokens(w for w in words if len(w) > 1 and w not in stopwords)


def tokenize(text: str | None) -> list[str]:
    """Lowercase alphanumeric split used for test titles."""

    if not text:
        return []
    return [part for part in _TITLE_SPLIT_RE.sub(" ", text.lower()).split() if part]


def jaccard(a: AbstractSet[str], b: AbstractSet[str]) -> float:
    if not a and not b:
        return 0.0
    small, big = (a, b) if len(a) <= len(b) else (b, a)
    inter = sum(1 for token in small if token in big)
    return inter / (len(a) + len(b) - inter)
