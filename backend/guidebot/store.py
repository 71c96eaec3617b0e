"""
Best-effort mirror of live conversations into the database.

The in-memory session is the source of truth while a conversation is open.
Every write here is allowed to fail: errors are logged, the transaction is
rolled back and the caller carries on.
"""

from __future__ import annotations
import json
import logging
from datetime import datetime
from typing import Any, List, Optional

from sqlalchemy import delete, func
from sqlalchemy.orm import Session

from .models import Conversation, ConversationMessage, MentorReport
from .tutoring.intake import IntakeRecord
from .tutoring.session import ConversationSession, ConversationTurn, restore_session


logger = logging.getLogger(__name__)


class ConversationStore:
	def __init__(self, db: Session) -> None:
		self.db = db

	def create_conversation(self, session: ConversationSession, title: str) -> bool:
		try:
			row = Conversation(id=session.conversation_id, title=title, submission_id=session.submission_id)
			self.db.add(row)
			self.db.commit()
			return True
		except Exception:
			self.db.rollback()
			logger.exception("Failed to create conversation %s", session.conversation_id)
			return False

	def add_message(
		self,
		conversation_id: str,
		turn: ConversationTurn,
		*,
		file_ops: Any = None,
		mentor_report: Any = None,
	) -> bool:
		try:
			last_seq = (
				self.db.query(func.max(ConversationMessage.seq))
				.filter(ConversationMessage.conversation_id == conversation_id)
				.scalar()
			)
			self.db.add(ConversationMessage(
				id=turn.id,
				conversation_id=conversation_id,
				role=turn.role,
				content=turn.content,
				message_type=turn.kind or "explanation",
				file_ops=json.dumps(file_ops) if file_ops is not None else None,
				mentor_report=json.dumps(mentor_report) if mentor_report is not None else None,
				created_at=turn.created_at,
				seq=(last_seq or 0) + 1,
			))
			row = self.db.get(Conversation, conversation_id)
			if row is not None:
				now = datetime.utcnow()
				row.updated_at = now
				row.last_message_at = now
			self.db.commit()
			return True
		except Exception:
			self.db.rollback()
			logger.exception("Failed to add message to conversation %s", conversation_id)
			return False

	def save_intake(self, conversation_id: str, intake: IntakeRecord) -> bool:
		try:
			row = self.db.get(Conversation, conversation_id)
			if row is None:
				logger.warning("Cannot save intake: conversation %s not found", conversation_id)
				return False
			row.project_idea = intake.project_idea
			row.tech_stack = intake.tech_stack
			row.skill_level = intake.skill_level
			row.timeline = intake.timeline
			row.intake_confirmed = True
			self.db.commit()
			return True
		except Exception:
			self.db.rollback()
			logger.exception("Failed to save intake for conversation %s", conversation_id)
			return False

	def update_title(self, conversation_id: str, title: str) -> bool:
		try:
			row = self.db.get(Conversation, conversation_id)
			if row is None:
				return False
			row.title = title
			row.updated_at = datetime.utcnow()
			self.db.commit()
			return True
		except Exception:
			self.db.rollback()
			logger.exception("Failed to rename conversation %s", conversation_id)
			return False

	def insert_mentor_report(self, submission_id: str, report: Any, raw_text: str) -> bool:
		try:
			self.db.add(MentorReport(submission_id=submission_id, report=json.dumps(report), raw_text=raw_text))
			self.db.commit()
			return True
		except Exception:
			self.db.rollback()
			logger.exception("Failed to save mentor report for submission %s", submission_id)
			return False

	def list_conversations(self) -> List[Conversation]:
		return self.db.query(Conversation).order_by(Conversation.updated_at.desc()).all()

	def load_session(self, conversation_id: str) -> Optional[ConversationSession]:
		row = self.db.get(Conversation, conversation_id)
		if row is None:
			return None
		messages = (
			self.db.query(ConversationMessage)
			.filter(ConversationMessage.conversation_id == conversation_id)
			.order_by(ConversationMessage.seq.asc(), ConversationMessage.created_at.asc())
			.all()
		)
		turns = tuple(
			ConversationTurn(role=m.role, content=m.content, kind=m.message_type, id=m.id, created_at=m.created_at)
			for m in messages
		)
		intake = None
		if row.intake_confirmed:
			intake = IntakeRecord(
				project_idea=row.project_idea or "",
				tech_stack=row.tech_stack or "",
				skill_level=row.skill_level or "",
				timeline=row.timeline or "",
			)
		return restore_session(conversation_id, turns, submission_id=row.submission_id, intake=intake)

	def delete_conversation(self, conversation_id: str) -> bool:
		try:
			self.db.execute(delete(ConversationMessage).where(ConversationMessage.conversation_id == conversation_id))
			res = self.db.execute(delete(Conversation).where(Conversation.id == conversation_id))
			self.db.commit()
			return bool(res.rowcount)
		except Exception:
			self.db.rollback()
			logger.exception("Failed to delete conversation %s", conversation_id)
			return False
