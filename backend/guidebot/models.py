from __future__ import annotations
from datetime import datetime
from sqlalchemy import Boolean, Column, Date, DateTime, ForeignKey, Integer, String, Text
from .db import Base


class Conversation(Base):
	__tablename__ = "conversations"
	id = Column(String(64), primary_key=True, index=True)
	title = Column(String(256), nullable=False, default="")
	submission_id = Column(String(64), nullable=True, index=True)
	# Intake fields are only written once the student confirmed them
	project_idea = Column(Text, nullable=True)
	tech_stack = Column(Text, nullable=True)
	skill_level = Column(String(64), nullable=True)
	timeline = Column(String(128), nullable=True)
	intake_confirmed = Column(Boolean, default=False, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
	last_message_at = Column(DateTime, nullable=True)


class ConversationMessage(Base):
	__tablename__ = "conversation_messages"
	id = Column(String(64), primary_key=True)
	conversation_id = Column(String(64), ForeignKey("conversations.id", ondelete="CASCADE"), nullable=False, index=True)
	role = Column(String(16), nullable=False)
	content = Column(Text, nullable=False)
	message_type = Column(String(16), nullable=False, default="explanation")
	file_ops = Column(Text, nullable=True)  # JSON string snapshot
	mentor_report = Column(Text, nullable=True)  # JSON string snapshot
	# Insertion order within the conversation; created_at alone can tie
	seq = Column(Integer, nullable=False, default=0)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class MentorReport(Base):
	__tablename__ = "mentor_reports"
	id = Column(Integer, primary_key=True, autoincrement=True)
	submission_id = Column(String(64), nullable=False, index=True)
	report = Column(Text, nullable=False)  # parsed report, re-serialized as JSON
	raw_text = Column(Text, nullable=False)  # interior of the fenced block, verbatim
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class Milestone(Base):
	__tablename__ = "milestones"
	id = Column(Integer, primary_key=True, autoincrement=True)
	submission_id = Column(String(64), nullable=False, index=True)
	title = Column(String(256), nullable=False)
	description = Column(Text, nullable=True)
	order_index = Column(Integer, default=0, nullable=False)
	due_date = Column(Date, nullable=True)
	source = Column(String(16), default="ai", nullable=False)
	status = Column(String(16), default="pending", nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class MilestoneTask(Base):
	__tablename__ = "milestone_tasks"
	id = Column(Integer, primary_key=True, autoincrement=True)
	milestone_id = Column(Integer, ForeignKey("milestones.id", ondelete="CASCADE"), nullable=False, index=True)
	title = Column(String(256), nullable=False)
	description = Column(Text, nullable=True)
	order_index = Column(Integer, default=0, nullable=False)
	status = Column(String(16), default="pending", nullable=False)
	progress = Column(Integer, default=0, nullable=False)
