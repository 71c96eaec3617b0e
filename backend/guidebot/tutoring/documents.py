"""
Fenced sub-documents embedded in assistant output.

The model is asked to emit machine-readable payloads as fenced blocks of the
form::

    ```FILE_OPS
    [{"action": "create", "path": "/src/app.py"}]
    ```

Output is free text, so a block may be missing, unterminated or hold invalid
JSON. Extraction never raises: every lookup returns one of :class:`NotFound`,
:class:`Invalid` or :class:`Valid`.
"""

from __future__ import annotations
import json
import logging
from dataclasses import dataclass
from typing import Any, Dict, Union


logger = logging.getLogger(__name__)

FENCE = "```"
FILE_OPS = "FILE_OPS"
MENTOR_REPORT = "MENTOR_REPORT"
DOCUMENT_TAGS = (FILE_OPS, MENTOR_REPORT)


@dataclass(frozen=True)
class NotFound:
	tag: str


@dataclass(frozen=True)
class Invalid:
	tag: str
	raw_text: str
	error: str


@dataclass(frozen=True)
class Valid:
	tag: str
	raw_text: str
	value: Any


ExtractionResult = Union[NotFound, Invalid, Valid]


def locate_fence(text: str, tag: str) -> str | None:
	"""Return the trimmed interior of the first ``tag`` fence, if it is closed."""
	opening = FENCE + tag
	start = text.find(opening)
	if start == -1:
		return None
	closing = text.find(FENCE, start + len(opening))
	if closing == -1 or closing <= start:
		return None
	return text[start + len(opening):closing].strip()


def extract_document(text: str, tag: str) -> ExtractionResult:
	raw = locate_fence(text or "", tag)
	if raw is None:
		return NotFound(tag)
	try:
		value = json.loads(raw)
	except ValueError as exc:
		logger.warning("%s block is not valid JSON: %s", tag, exc)
		return Invalid(tag, raw, str(exc))
	return Valid(tag, raw, value)


def extract_documents(text: str) -> Dict[str, ExtractionResult]:
	"""Look up every known tag independently."""
	return {tag: extract_document(text, tag) for tag in DOCUMENT_TAGS}
