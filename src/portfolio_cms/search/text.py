"""Searchable-text extraction and query tokenisation shared by both index strategies."""

from __future__ import annotations

from collections.abc import Mapping
import re
from typing import Any

from portfolio_cms.adapters.tables import table_for
from portfolio_cms.domain.model import Collection, parse_payload_text


# Image references carry no searchable meaning.
PAYLOAD_SKIP_KEYS = frozenset({"screenshots"})

_TOKEN_RE = re.compile(r"\w+", re.UNICODE)


def flatten_payload(value: Any) -> str:
    """Flatten a structured payload into space-joined text.

    Strings are kept, list-valued sub-fields are joined, nested mappings are
    walked in key order.
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value.strip()
    if isinstance(value, bool):
        return ""
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, Mapping):
        parts = (flatten_payload(item) for key, item in value.items() if key not in PAYLOAD_SKIP_KEYS)
    elif isinstance(value, (list, tuple)):
        parts = (flatten_payload(item) for item in value)
    else:
        return ""
    return " ".join(part for part in parts if part)


def searchable_text(collection: Collection, row: Mapping[str, Any]) -> tuple[str, str]:
    """Return ``(title, body)`` for a row or a record's column dict."""
    title = str(row.get("title") or "").strip()
    if collection is Collection.PROJECTS:
        body = flatten_payload(parse_payload_text(row.get("data")))
    else:
        table = table_for(collection)
        body = " ".join(str(row.get(column) or "").strip() for column in table.content_columns)
    return title, body.strip()


def tokenize(text: str | None) -> list[str]:
    """Lower-cased word tokens; punctuation and FTS operators are dropped."""
    if not text:
        return []
    return _TOKEN_RE.findall(text.lower())


def normalize_query(text: str | None) -> str:
    return " ".join(tokenize(text))


def build_match_expression(text: str | None) -> str | None:
    """Turn free text into an FTS5 MATCH expression of AND-ed prefix terms.

    ``"Foo ba"`` becomes ``"foo"* "ba"*``; returns None when nothing searchable remains.
    """
    tokens = tokenize(text)
    if not tokens:
        return None
    return " ".join(f'"{token}"*' for token in tokens)
