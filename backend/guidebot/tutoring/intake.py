"""
Intake parsing.

A tutoring conversation cannot start until the student has supplied four
project-context fields in ``Label: value`` form. This module turns one free-text
message into an :class:`IntakeRecord`, or nothing when any field is missing.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple


_LINE_SPLIT = re.compile(r"\r?\n")
_LABEL_VALUE = re.compile(r"^([^:]+):\s*(.+)$")

# Canonical field -> accepted labels, in order of precedence
INTAKE_LABELS: Dict[str, Tuple[str, ...]] = {
	"project_idea": ("project idea", "project"),
	"tech_stack": ("tech stack", "tech"),
	"skill_level": ("skill level", "skill"),
	"timeline": ("timeline", "timeframe"),
}


@dataclass(frozen=True)
class IntakeRecord:
	project_idea: str
	tech_stack: str
	skill_level: str
	timeline: str

	def to_dict(self) -> Dict[str, str]:
		return {
			"project_idea": self.project_idea,
			"tech_stack": self.tech_stack,
			"skill_level": self.skill_level,
			"timeline": self.timeline,
		}


def _collect_labels(text: str) -> Dict[str, str]:
	found: Dict[str, str] = {}
	for raw in _LINE_SPLIT.split(text or ""):
		line = raw.strip()
		if not line:
			continue
		match = _LABEL_VALUE.match(line)
		if match:
			found[match.group(1).strip().lower()] = match.group(2).strip()
	return found


def parse_intake(text: str) -> Optional[IntakeRecord]:
	"""Return the intake record described by ``text`` or ``None``.

	Lines may come in any order and each field may use any of its synonyms.
	A record is only produced when all four fields resolve to non-empty values.
	"""
	labels = _collect_labels(text)
	values: Dict[str, str] = {}
	for field_name, synonyms in INTAKE_LABELS.items():
		value = ""
		for label in synonyms:
			value = labels.get(label, "")
			if value:
				break
		if not value:
			return None
		values[field_name] = value
	return IntakeRecord(**values)


def format_intake(record: IntakeRecord) -> str:
	return (
		f"Project idea: {record.project_idea}\n"
		f"Tech stack: {record.tech_stack}\n"
		f"Skill level: {record.skill_level}\n"
		f"Timeline: {record.timeline}"
	)
