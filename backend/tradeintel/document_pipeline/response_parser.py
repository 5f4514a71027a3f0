"""
Parsing of semi-structured provider responses.

Providers usually answer with some prose followed by a JSON block (sometimes
inside a Markdown code fence). ``parse_structured`` finds the first balanced
``{...}`` span that deserialises to an object. ``extract_entities`` is an
independent regex pass used as last-resort enrichment when no JSON is found.
"""

import json
import logging
import re
from collections.abc import Iterator, Sequence
from typing import Any

from tradeintel.errors import ParseError
from tradeintel.schemas.pipeline import Entity

logger = logging.getLogger("tradeintel.response_parser")

# (entity type, pattern, confidence). Order matters: earlier types claim their
# span first, so a date is never reported again as a phone number or amount.
ENTITY_PATTERNS: list[tuple[str, re.Pattern, float]] = [
    (
        "email",
        re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
        90,
    ),
    (
        "date",
        re.compile(
            r"\b\d{4}-\d{2}-\d{2}\b|\b\d{1,2}[/-]\d{1,2}[/-]\d{2,4}\b"
            r"|\b\d{1,2}\.\d{1,2}\.\d{4}\b"
        ),
        85,
    ),
    (
        "phone",
        re.compile(r"(?:\+\d{1,3}[\s.-]?)?\(?\b\d{3}\)?[\s.-]?\d{3}[\s.-]?\d{4}\b"),
        85,
    ),
    (
        "amount",
        re.compile(
            r"(?:[$€£₹]|\b(?:USD|EUR|GBP|INR|Rs\.?)\s?)(?:\d{1,3}(?:,\d{3})+|\d+)(?:\.\d{2})?(?!\d)"
            r"|\b(?:\d{1,3}(?:,\d{3})+|\d+)\.\d{2}\b"
        ),
        80,
    ),
]


def _balanced_spans(text: str) -> Iterator[tuple[int, int]]:
    """Yield (start, end) of every balanced ``{...}`` span, in order of start.

    String literals are honoured, so braces inside JSON strings don't count.
    """
    for start, char in enumerate(text):
        if char != "{":
            continue
        depth = 0
        in_string = False
        escaped = False
        for pos in range(start, len(text)):
            c = text[pos]
            if in_string:
                if escaped:
                    escaped = False
                elif c == "\\":
                    escaped = True
                elif c == '"':
                    in_string = False
                continue
            if c == '"':
                in_string = True
            elif c == "{":
                depth += 1
            elif c == "}":
                depth -= 1
                if depth == 0:
                    yield start, pos + 1
                    break


class ResponseParser:
    """Turns free-form provider text into structured data."""

    def parse_structured(self, raw_text: str, expected_keys: Sequence[str] = ()) -> dict[str, Any]:
        """Return the first JSON object embedded in ``raw_text``.

        Args:
            raw_text: Provider response (prose and/or JSON, possibly fenced).
            expected_keys: If given, the object must contain at least one of these
                top-level keys to be accepted.

        Raises:
            ParseError: No balanced span deserialises to an acceptable object.
        """
        if not raw_text or "{" not in raw_text:
            raise ParseError("Response contains no JSON object")

        for start, end in _balanced_spans(raw_text):
            try:
                value = json.loads(raw_text[start:end])
            except json.JSONDecodeError:
                continue
            if not isinstance(value, dict):
                continue
            if expected_keys and not any(key in value for key in expected_keys):
                continue
            return value

        logger.debug("No parseable JSON object in response (%d chars)", len(raw_text))
        raise ParseError("Response JSON could not be parsed")

    def extract_entities(self, raw_text: str) -> list[Entity]:
        """Regex-based entity pass: emails, dates, phone numbers and amounts."""
        if not raw_text:
            return []

        entities: list[Entity] = []
        claimed: list[tuple[int, int]] = []
        seen: set[tuple[str, str]] = set()

        for entity_type, pattern, confidence in ENTITY_PATTERNS:
            for match in pattern.finditer(raw_text):
                start, end = match.span()
                if any(start < c_end and c_start < end for c_start, c_end in claimed):
                    continue
                claimed.append((start, end))
                value = match.group(0).strip()
                if (entity_type, value) in seen:
                    continue
                seen.add((entity_type, value))
                entities.append(Entity(type=entity_type, value=value, confidence=confidence))

        return entities
