"""
modules/optimization/response_parsers.py
------------------------------------------
Ordered parser strategies for free-form AI output.

Each strategy implements ``try_parse(text) -> (payload, ok)``.  The chain in
DEFAULT_PARSERS is tried in order and stops at the first success:

  1. WholeTextJsonParser       the entire response is a JSON object
  2. FencedBlockParser         a ```json fenced block holds the object
  3. KeyedObjectParser         first balanced {...} containing "optimizedSequence"
  4. AnyObjectParser           first balanced {...} that parses as an object
  5. SequenceSentenceParser    "the optimal sequence is: 3, 1, 2" → partial result

A strategy never raises; it returns (None, False) when it does not apply.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import Iterator, Optional, Sequence

logger = logging.getLogger(__name__)

SEQUENCE_KEY = "optimizedSequence"

# balanced spans tried per response
_MAX_CANDIDATES = 64

_FENCE_RE = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
_SEQUENCE_SENTENCE_RE = re.compile(
    r"sequence\s*(?:is|should be|would be)?\s*[:=]?\s*\[?\s*"
    r"(\d+(?:\s*(?:,|->|→|and|then)\s*\d+)+)",
    re.IGNORECASE,
)


def _loads_object(fragment: str) -> Optional[dict]:
    try:
        value = json.loads(fragment)
    except (json.JSONDecodeError, TypeError, ValueError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def balanced_objects(text: str) -> Iterator[str]:
    """
    Yield every brace-balanced ``{...}`` span in *text*, outermost first,
    in order of their opening brace.  Braces inside JSON strings are ignored.

    One pass with a stack of open-brace offsets; quotes outside every object
    are prose and not tracked.  At most _MAX_CANDIDATES spans are yielded.
    """
    spans: list[tuple[int, int]] = []
    opens: list[int] = []
    in_string = False
    escaped = False
    for i, c in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif c == "\\":
                escaped = True
            elif c == '"':
                in_string = False
            continue
        if c == '"' and opens:
            in_string = True
        elif c == "{":
            opens.append(i)
        elif c == "}" and opens:
            spans.append((opens.pop(), i))
    for start, end in sorted(spans)[:_MAX_CANDIDATES]:
        yield text[start:end + 1]


class ResponseParser(ABC):
    """One strategy for pulling a suggestion dict out of AI text."""

    NAME: str = "ResponseParser"

    @abstractmethod
    def try_parse(self, text: str) -> tuple[Optional[dict], bool]:
        ...

    def __repr__(self) -> str:
        return self.NAME


class WholeTextJsonParser(ResponseParser):
    NAME = "whole_text_json"

    def try_parse(self, text: str) -> tuple[Optional[dict], bool]:
        payload = _loads_object(text.strip())
        return payload, payload is not None


class FencedBlockParser(ResponseParser):
    NAME = "fenced_block"

    def try_parse(self, text: str) -> tuple[Optional[dict], bool]:
        for match in _FENCE_RE.finditer(text):
            payload = _loads_object(match.group(1).strip())
            if payload is not None:
                return payload, True
        return None, False


class KeyedObjectParser(ResponseParser):
    NAME = "keyed_object"

    def __init__(self, key: str = SEQUENCE_KEY) -> None:
        self._needle = f'"{key}"'

    def try_parse(self, text: str) -> tuple[Optional[dict], bool]:
        for fragment in balanced_objects(text):
            if self._needle not in fragment:
                continue
            payload = _loads_object(fragment)
            if payload is not None:
                return payload, True
        return None, False


class AnyObjectParser(ResponseParser):
    NAME = "any_object"

    def try_parse(self, text: str) -> tuple[Optional[dict], bool]:
        for fragment in balanced_objects(text):
            payload = _loads_object(fragment)
            if payload is not None:
                return payload, True
        return None, False


class SequenceSentenceParser(ResponseParser):
    """Last resort: only an ordered id list, no dates or metrics."""

    NAME = "sequence_sentence"

    def try_parse(self, text: str) -> tuple[Optional[dict], bool]:
        match = _SEQUENCE_SENTENCE_RE.search(text)
        if not match:
            return None, False
        ids = [int(n) for n in re.findall(r"\d+", match.group(1))]
        return {SEQUENCE_KEY: ids, "partial": True}, True


DEFAULT_PARSERS: tuple[ResponseParser, ...] = (
    WholeTextJsonParser(),
    FencedBlockParser(),
    KeyedObjectParser(),
    AnyObjectParser(),
    SequenceSentenceParser(),
)


def parse_response(
    text: str, parsers: Sequence[ResponseParser] = DEFAULT_PARSERS
) -> tuple[Optional[dict], Optional[str]]:
    """Run the chain; return (payload, strategy name) or (None, None)."""
    if not text:
        return None, None
    for parser in parsers:
        payload, ok = parser.try_parse(text)
        if ok:
            if parser is not parsers[0]:
                logger.warning("AI output recovered by %s parser", parser.NAME)
            return payload, parser.NAME
    return None, None
