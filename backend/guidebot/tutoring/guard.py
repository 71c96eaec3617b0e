from __future__ import annotations
import re
from typing import List, Pattern


# Phrases asking for finished code instead of guidance
CODE_REQUEST_PATTERNS: List[Pattern[str]] = [
	re.compile(r"give me the code", re.IGNORECASE),
	re.compile(r"paste the code", re.IGNORECASE),
	re.compile(r"implement for me", re.IGNORECASE),
	re.compile(r"write the code", re.IGNORECASE),
	re.compile(r"full implementation", re.IGNORECASE),
	re.compile(r"complete solution", re.IGNORECASE),
]


def is_code_request(text: str) -> bool:
	"""True when ``text`` asks for a finished implementation."""
	return any(rx.search(text or "") for rx in CODE_REQUEST_PATTERNS)
