from __future__ import annotations
import json
from typing import Any, List, Optional, Sequence

from .intake import IntakeRecord, format_intake


SYSTEM_PROMPT = """You are a project-skill tutor for a student portal. You teach, guide and evaluate students through milestone-based project work. You MUST NOT do the work for the student or provide runnable code. Enforce these rules on every turn.

RULES:
1) NO-EXECUTION: Never provide full code blocks, complete implementations or step-by-step code to copy. If the student asks for code, refuse and redirect to logic, algorithm design, tests or a debugging approach.
2) INTAKE: The student has confirmed four inputs (project idea, tech stack, skill level, timeline). Use them; do not ask for them again.
3) MILESTONES: When asked, produce a numbered sequence of milestones. Each is sequential, fits in about 2-3 weeks, is verifiable, and contains no implementation code. For every milestone include: Objective, Concepts Involved, Expected Output, File/Folder Structure (names only), Success Criteria.
4) GUIDANCE: Give step-wise thinking guidance: what to think about, tradeoffs and pitfalls. Ask the student to explain their approach before the next hint. Use hints, leading questions and text diagrams, never code.
5) PROGRESS VALIDATION: When the student reports milestone work, ask what they implemented in their own words, check it against the success criteria, point out gaps, and only move on once they show understanding.
6) MENTOR REPORT: After each validated milestone, output a single JSON object inside a fenced block labelled MENTOR_REPORT with keys: milestone_name, understanding_level (low/medium/high), strengths, weak_areas, red_flags, mentor_recommendation. Nothing else goes in that block.
7) ANTI-SHORTCUT: If the student tries to skip milestones, pastes large broken code or asks for a finished solution, stop and ask: "What do you think the issue is? What did you already try?"
8) TONE: Direct, instructional and firm. No praise or motivational filler.

When asked for code, answer: "I cannot provide code. Tell me your intended approach and I will evaluate and guide the logic, tests, and structure."

Always take the student's current task and current code into account, but never complete, fix or produce code from it."""

FILE_OPS_PROMPT = """FILE OPERATIONS: You may propose changes to the project tree (folders, placeholder files, renames), never file bodies containing working code. Put them in a fenced block labelled FILE_OPS holding a JSON object or array of objects with keys: action (create|update|delete|rename|export), path, and optionally content, newName, recursive. The student reviews and confirms every batch before it is applied."""

GREETING = """I am your project guide. My role is to teach, guide and evaluate your project work. I will NOT write code for you.

Before I create milestones or give guidance, provide all of these inputs (I will not proceed until they are confirmed):
- Project idea (one-line description)
- Tech stack / language (primary)
- Skill level (beginner / intermediate / advanced)
- Timeline (weeks or target date)

Please provide the four fields in one message in this format:
Project idea: ...
Tech stack: ...
Skill level: ...
Timeline: ...

Once you confirm them, I will propose a numbered sequence of milestones. I only explain concepts, ask guiding questions and produce verifiable milestone plans."""

REFUSAL = "I cannot provide code. Describe your intended approach and I will guide the logic, tests, and structure."

FORMAT_REMINDER = (
	"Please provide the required intake fields in this exact format:\n"
	"Project idea: ...\nTech stack: ...\nSkill level: ...\nTimeline: ...\n\n"
	"Or confirm the parsed intake with 'yes'/'no'."
)

INTAKE_CONFIRMED = "Intake confirmed. Tell me which milestone you'd like to start with, or ask me to create the full milestone sequence."

INTAKE_DISCARDED = "Okay, please re-enter the intake fields in the required format."

ERROR_MESSAGES = {
	"rate_limited": "Too many requests. Please wait a moment and try again.",
	"quota_exhausted": "AI credits have been used up. Please add more credits.",
	"gateway_error": "The AI service returned an error. Please try again.",
	"connection_error": "Failed to connect to the AI service. Please try again.",
}


def intake_echo(record: IntakeRecord) -> str:
	return (
		f"I parsed your intake as:\n{format_intake(record)}\n\n"
		"Please reply with **yes** to confirm or **no** to re-enter the details."
	)


def build_system_prompt(
	*,
	current_task: Optional[str] = None,
	current_code: Optional[str] = None,
	code_limit: int = 500,
	intake: Optional[IntakeRecord] = None,
	project_files: Optional[Sequence[str]] = None,
	project_structure: Optional[str] = None,
	files_content: Optional[str] = None,
	progress_entries: Optional[str] = None,
) -> str:
	"""Append the optional context sections to the tutoring prompt."""
	parts: List[str] = [SYSTEM_PROMPT]
	if intake is not None:
		parts.append(f"Confirmed Intake:\n{format_intake(intake)}")
	if current_task:
		parts.append(f"Current Task: {current_task}")
	if current_code:
		parts.append(
			"Student's Current Code (for context, do NOT complete it for them):\n"
			f"```\n{current_code[:code_limit]}...\n```"
		)
	if project_files:
		listing = "\n".join(f"- {p}" for p in project_files)
		parts.append(f"Project Files Available:\n{listing}")
	if project_structure:
		parts.append(f"Project Structure:\n{project_structure}")
	if files_content:
		parts.append(f"Project File Contents (read-only):\n{files_content}")
		parts.append(FILE_OPS_PROMPT)
	if progress_entries:
		parts.append(f"Progress Entries:\n{progress_entries}")
	return "\n\n".join(parts)


def dump_manifest(value: Any) -> Optional[str]:
	if value is None:
		return None
	if isinstance(value, str):
		return value
	return json.dumps(value)
