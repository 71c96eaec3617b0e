"""
Conversation state for one tutoring chat.

``ConversationSession`` is a frozen value. Every change goes through a pure
function returning a new session, so the intake handshake can be exercised
without any network or storage.

Phases::

    NO_INTAKE --intake parsed--> AWAITING_CONFIRMATION --"yes"--> CONFIRMED
        ^                               |
        +------------"no"---------------+
"""

from __future__ import annotations
import dataclasses
import re
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from . import prompts
from .file_ops import FileOperation, OpsLogEntry
from .guard import is_code_request
from .intake import IntakeRecord, parse_intake


_YES = re.compile(r"^yes$", re.IGNORECASE)
_NO = re.compile(r"^no$", re.IGNORECASE)


def new_turn_id() -> str:
	return uuid.uuid4().hex


@dataclass(frozen=True)
class ConversationTurn:
	role: str  # user | assistant
	content: str
	kind: Optional[str] = None
	id: str = field(default_factory=new_turn_id)
	created_at: datetime = field(default_factory=datetime.utcnow)

	def to_dict(self) -> Dict[str, object]:
		return {
			"id": self.id,
			"role": self.role,
			"content": self.content,
			"kind": self.kind,
			"created_at": self.created_at.isoformat(),
		}


@dataclass(frozen=True)
class Transcript:
	"""Ordered turns plus the id of the single assistant turn still streaming."""

	turns: Tuple[ConversationTurn, ...] = ()
	open_turn_id: Optional[str] = None

	def append(self, turn: ConversationTurn) -> "Transcript":
		if self.open_turn_id is not None:
			raise ValueError("cannot append while an assistant turn is still streaming")
		return Transcript(self.turns + (turn,), None)

	def write_open(self, turn_id: str, content: str) -> "Transcript":
		"""Create the open turn on first use, then replace its content by id."""
		if self.open_turn_id is None:
			turn = ConversationTurn(role="assistant", content=content, kind="explanation", id=turn_id)
			return Transcript(self.turns + (turn,), turn_id)
		if self.open_turn_id != turn_id:
			raise ValueError(f"turn {turn_id} is not the open turn")
		last = self.turns[-1]
		return Transcript(self.turns[:-1] + (dataclasses.replace(last, content=content),), turn_id)

	def close(self) -> "Transcript":
		return Transcript(self.turns, None)

	def discard_open(self) -> "Transcript":
		if self.open_turn_id is None:
			return self
		return Transcript(tuple(t for t in self.turns if t.id != self.open_turn_id), None)

	def get(self, turn_id: str) -> Optional[ConversationTurn]:
		for turn in self.turns:
			if turn.id == turn_id:
				return turn
		return None

	def history(self) -> List[Dict[str, str]]:
		return [{"role": t.role, "content": t.content} for t in self.turns]


class Phase(str, Enum):
	NO_INTAKE = "no_intake"
	AWAITING_CONFIRMATION = "awaiting_confirmation"
	CONFIRMED = "confirmed"


@dataclass(frozen=True)
class ConversationSession:
	conversation_id: str
	submission_id: Optional[str] = None
	phase: Phase = Phase.NO_INTAKE
	pending_intake: Optional[IntakeRecord] = None
	intake: Optional[IntakeRecord] = None
	transcript: Transcript = field(default_factory=Transcript)
	pending_file_ops: Optional[Tuple[FileOperation, ...]] = None
	ops_log: Tuple[OpsLogEntry, ...] = ()


@dataclass(frozen=True)
class Transition:
	session: ConversationSession
	turns: Tuple[ConversationTurn, ...] = ()
	forward: bool = False
	confirmed_intake: Optional[IntakeRecord] = None


def new_session(conversation_id: Optional[str] = None, submission_id: Optional[str] = None) -> ConversationSession:
	greeting = ConversationTurn(role="assistant", content=prompts.GREETING, kind="explanation")
	return ConversationSession(
		conversation_id=conversation_id or uuid.uuid4().hex,
		submission_id=submission_id,
		transcript=Transcript((greeting,)),
	)


def _reply(
	session: ConversationSession,
	text: str,
	reply: str,
	kind: str,
	**changes,
) -> Transition:
	user_turn = ConversationTurn(role="user", content=text)
	assistant_turn = ConversationTurn(role="assistant", content=reply, kind=kind)
	transcript = session.transcript.append(user_turn).append(assistant_turn)
	confirmed = changes.pop("confirmed_intake", None)
	updated = dataclasses.replace(session, transcript=transcript, **changes)
	return Transition(updated, (user_turn, assistant_turn), confirmed_intake=confirmed)


def receive_user_message(session: ConversationSession, text: str) -> Transition:
	"""Route one user message through the guard and the intake handshake."""
	text = (text or "").strip()
	if not text:
		raise ValueError("message text is required")

	if is_code_request(text):
		return _reply(session, text, prompts.REFUSAL, "warning")

	if session.phase is Phase.CONFIRMED:
		user_turn = ConversationTurn(role="user", content=text)
		updated = dataclasses.replace(session, transcript=session.transcript.append(user_turn))
		return Transition(updated, (user_turn,), forward=True)

	parsed = parse_intake(text)
	if parsed is not None:
		return _reply(
			session, text, prompts.intake_echo(parsed), "question",
			phase=Phase.AWAITING_CONFIRMATION, pending_intake=parsed,
		)

	if session.phase is Phase.AWAITING_CONFIRMATION and session.pending_intake is not None:
		if _YES.match(text):
			return _reply(
				session, text, prompts.INTAKE_CONFIRMED, "explanation",
				phase=Phase.CONFIRMED, intake=session.pending_intake, pending_intake=None,
				confirmed_intake=session.pending_intake,
			)
		if _NO.match(text):
			return _reply(
				session, text, prompts.INTAKE_DISCARDED, "explanation",
				phase=Phase.NO_INTAKE, pending_intake=None,
			)

	return _reply(session, text, prompts.FORMAT_REMINDER, "question")


def restore_session(
	conversation_id: str,
	turns: Tuple[ConversationTurn, ...],
	*,
	submission_id: Optional[str] = None,
	intake: Optional[IntakeRecord] = None,
) -> ConversationSession:
	"""Rebuild a session from mirrored turns. Pending state is not kept."""
	return ConversationSession(
		conversation_id=conversation_id,
		submission_id=submission_id,
		phase=Phase.CONFIRMED if intake is not None else Phase.NO_INTAKE,
		intake=intake,
		transcript=Transcript(tuple(turns)),
	)
