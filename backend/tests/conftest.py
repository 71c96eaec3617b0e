from __future__ import annotations
import json
from typing import Any, Dict, List, Optional, Sequence

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from guidebot import models  # noqa: F401  registers tables on Base
from guidebot.db import Base


def sse_event(content: str) -> str:
	return "data: " + json.dumps({"choices": [{"delta": {"content": content}}]}) + "\n\n"


def sse_body(*deltas: str, done: bool = True) -> bytes:
	body = "".join(sse_event(d) for d in deltas)
	if done:
		body += "data: [DONE]\n\n"
	return body.encode("utf-8")


class FakeGateway:
	"""Replays fixed byte chunks, optionally failing after them."""

	def __init__(self, chunks: Sequence[bytes] = (), error: Optional[Exception] = None) -> None:
		self.chunks = list(chunks)
		self.error = error
		self.calls: List[Dict[str, Any]] = []
		self.closed = False

	async def stream_chat(self, system_prompt: str, messages):
		self.calls.append({"system_prompt": system_prompt, "messages": list(messages)})
		for chunk in self.chunks:
			yield chunk
		if self.error is not None:
			raise self.error

	async def aclose(self) -> None:
		self.closed = True


class RecordingStore:
	def __init__(self, fail: bool = False) -> None:
		self.fail = fail
		self.messages: List[Dict[str, Any]] = []
		self.intakes: List[Any] = []
		self.reports: List[Dict[str, Any]] = []

	def add_message(self, conversation_id, turn, *, file_ops=None, mentor_report=None) -> bool:
		self.messages.append({"conversation_id": conversation_id, "turn": turn, "file_ops": file_ops, "mentor_report": mentor_report})
		return not self.fail

	def save_intake(self, conversation_id, intake) -> bool:
		self.intakes.append(intake)
		return not self.fail

	def insert_mentor_report(self, submission_id, report, raw_text) -> bool:
		self.reports.append({"submission_id": submission_id, "report": report, "raw_text": raw_text})
		return not self.fail


@pytest.fixture
def sse():
	return sse_body


@pytest.fixture
def gateway_cls():
	return FakeGateway


@pytest.fixture
def recording_store():
	return RecordingStore()


@pytest.fixture
def db_session():
	engine = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	Base.metadata.create_all(bind=engine)
	TestingSession = sessionmaker(bind=engine, autocommit=False, autoflush=False, future=True)
	db = TestingSession()
	try:
		yield db
	finally:
		db.close()
		engine.dispose()
