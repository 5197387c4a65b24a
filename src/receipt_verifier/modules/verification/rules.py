from __future__ import annotations

import enum
import logging
import re
from dataclasses import dataclass
from functools import lru_cache
from html import unescape
from typing import Any, Literal

from bs4 import Tag

from receipt_verifier.core.logging import get_logger, log_event
from receipt_verifier.modules.verification.parse import ParsedDocument, collapse_whitespace

logger = get_logger(__name__)

_TAG_RE = re.compile(r"<[^>]*>")


class FieldKind(str, enum.Enum):
    TEXT = "text"
    NAME = "name"
    AMOUNT = "amount"
    TIMESTAMP = "timestamp"


@lru_cache(maxsize=512)
def _compile(pattern: str, flags: int) -> re.Pattern[str]:
    return re.compile(pattern, flags)


@dataclass(frozen=True)
class PatternRule:
    """Regex against the flattened text (or the raw markup); group 1 of the nth match."""

    pattern: str
    target: Literal["text", "markup"] = "text"
    occurrence: int = 0
    strip_tags: bool = False
    flags: int = re.IGNORECASE | re.DOTALL

    def extract(self, doc: ParsedDocument) -> str:
        haystack = doc.markup if self.target == "markup" else doc.text
        if not haystack:
            return ""
        regex = _compile(self.pattern, self.flags)
        for idx, m in enumerate(regex.finditer(haystack)):
            if idx < self.occurrence:
                continue
            value = (m.group(1) if regex.groups else m.group(0)) or ""
            if self.strip_tags or self.target == "markup":
                value = unescape(_TAG_RE.sub(" ", value))
            return value
        return ""


@dataclass(frozen=True)
class CellRule:
    """Structural query over markup.

    Elements matching `selector` whose text contains one of `labels` (and none of
    `exclude`) are candidates; only the innermost candidates are kept so layout
    tables wrapping the whole receipt never win. From the chosen candidate the
    value is taken from its next sibling cell, the last cell of its row, or the
    element itself.
    """

    labels: tuple[str, ...] = ()
    selector: str = "td"
    take: Literal["next", "last", "self"] = "next"
    exclude: tuple[str, ...] = ()
    index: int = 0
    next_class: str | None = None

    def extract(self, doc: ParsedDocument) -> str:
        if doc.soup is None:
            return ""
        matches = [el for el in doc.soup.select(self.selector) if self._accepts(el)]
        matches = _innermost(matches)
        if len(matches) <= self.index:
            return ""
        el = matches[self.index]
        if self.take == "self":
            return el.get_text(" ", strip=True)
        if self.take == "last":
            row = el if el.name == "tr" else el.find_parent("tr")
            if row is None:
                return ""
            cells = row.find_all(["td", "th"], recursive=False) or row.find_all(["td", "th"])
            return cells[-1].get_text(" ", strip=True) if len(cells) > 1 else ""
        if self.next_class:
            nxt = el.find_next_sibling(class_=self.next_class)
        else:
            nxt = el.find_next_sibling(["td", "th", "span", "div", "dd"])
        return nxt.get_text(" ", strip=True) if nxt is not None else ""

    def _accepts(self, el: Tag) -> bool:
        if not self.labels and not self.exclude:
            return True
        text = collapse_whitespace(el.get_text(" "))
        if self.labels and not any(label in text for label in self.labels):
            return False
        return not any(word in text for word in self.exclude)


@dataclass(frozen=True)
class KeyRule:
    """Nested key / index lookup in structured data; absent keys read as empty."""

    path: tuple[str | int, ...]

    def extract(self, doc: ParsedDocument) -> str:
        node: Any = doc.data
        for key in self.path:
            if isinstance(key, int):
                if not isinstance(node, list) or not -len(node) <= key < len(node):
                    return ""
                node = node[key]
            else:
                if not isinstance(node, dict):
                    return ""
                node = node.get(key)
            if node is None:
                return ""
        if isinstance(node, (dict, list)):
            return ""
        return str(node)


FieldRule = PatternRule | CellRule | KeyRule


@dataclass(frozen=True)
class FieldSpec:
    name: str
    kind: FieldKind
    rules: tuple[FieldRule, ...]
    # timestamp fields only: replaces the default format order
    formats: tuple[str, ...] | None = None

    def __post_init__(self) -> None:
        if not self.rules:
            raise ValueError(f"Field {self.name!r} declares no extraction rules")


def extract_field(doc: ParsedDocument, spec: FieldSpec) -> str:
    for idx, rule in enumerate(spec.rules):
        value = collapse_whitespace(rule.extract(doc))
        if value:
            log_event(
                logger,
                "verify.extract.field",
                level=logging.DEBUG,
                field=spec.name,
                rule=type(rule).__name__,
                rule_index=idx,
            )
            return value
    return ""


def extract_record(doc: ParsedDocument, fields: tuple[FieldSpec, ...]) -> dict[str, str]:
    record: dict[str, str] = {}
    for spec in fields:
        value = extract_field(doc, spec)
        if value:
            record[spec.name] = value
    return record


def _innermost(elements: list[Tag]) -> list[Tag]:
    wrapping: set[int] = set()
    ids = {id(el) for el in elements}
    for el in elements:
        for parent in el.parents:
            if id(parent) in ids:
                wrapping.add(id(parent))
    return [el for el in elements if id(el) not in wrapping]
