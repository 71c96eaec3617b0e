"""
Drives one live tutoring conversation.

The controller owns the current :class:`ConversationSession` value and the
project tree for a conversation. For each user message it runs the state
machine, streams the model reply when the intake is confirmed, and then
inspects the finished reply for embedded documents. Everything it produces is
reported as a sequence of :class:`ControllerEvent` values.
"""

from __future__ import annotations
import dataclasses
import json
import logging
from contextlib import aclosing
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Protocol, Sequence

from ..gateway_client import GatewayError
from . import file_ops as gate
from .documents import FILE_OPS, MENTOR_REPORT, Valid, extract_documents
from .file_ops import OpsLogEntry, parse_batch
from .filesystem import InMemoryFileSystem
from .prompts import ERROR_MESSAGES, build_system_prompt, dump_manifest
from .session import ConversationSession, Transcript, new_turn_id, receive_user_message
from .stream import iter_deltas


logger = logging.getLogger(__name__)


class ChatGateway(Protocol):
	def stream_chat(self, system_prompt: str, messages: Sequence[Dict[str, str]]) -> AsyncIterator[bytes]: ...


class MessageStore(Protocol):
	def add_message(self, conversation_id: str, turn: Any, *, file_ops: Any = None, mentor_report: Any = None) -> bool: ...

	def save_intake(self, conversation_id: str, intake: Any) -> bool: ...

	def insert_mentor_report(self, submission_id: str, report: Any, raw_text: str) -> bool: ...


@dataclass(frozen=True)
class ChatContext:
	current_task: Optional[str] = None
	current_code: Optional[str] = None
	allow_file_access: bool = False
	progress_entries: Any = None


@dataclass(frozen=True)
class ControllerEvent:
	type: str  # turn | delta | file_ops | mentor_report | error | done
	data: Dict[str, Any] = field(default_factory=dict)


class ConversationController:
	def __init__(
		self,
		session: ConversationSession,
		*,
		filesystem: Optional[InMemoryFileSystem] = None,
		code_limit: int = 500,
	) -> None:
		self.session = session
		self.filesystem = filesystem or InMemoryFileSystem()
		self.code_limit = code_limit
		self.busy = False

	@property
	def conversation_id(self) -> str:
		return self.session.conversation_id

	def _set_transcript(self, transcript: Transcript) -> None:
		self.session = dataclasses.replace(self.session, transcript=transcript)

	def system_prompt(self, context: Optional[ChatContext] = None) -> str:
		ctx = context or ChatContext()
		paths = self.filesystem.paths()
		return build_system_prompt(
			current_task=ctx.current_task,
			current_code=ctx.current_code,
			code_limit=self.code_limit,
			intake=self.session.intake,
			project_files=paths,
			project_structure=json.dumps(self.filesystem.structure()) if paths else None,
			files_content=self.filesystem.export_project() if ctx.allow_file_access else None,
			progress_entries=dump_manifest(ctx.progress_entries),
		)

	async def send(
		self,
		text: str,
		*,
		gateway: Optional[ChatGateway] = None,
		context: Optional[ChatContext] = None,
		store: Optional[MessageStore] = None,
	) -> AsyncIterator[ControllerEvent]:
		"""Process one user message; yields events until the reply is complete."""
		if self.busy:
			yield ControllerEvent("error", {"category": "busy", "message": "A reply is still in progress."})
			return
		self.busy = True
		try:
			transition = receive_user_message(self.session, text)
			self.session = transition.session
			for turn in transition.turns:
				if store is not None:
					store.add_message(self.conversation_id, turn)
				yield ControllerEvent("turn", turn.to_dict())
			if transition.confirmed_intake is not None and store is not None:
				store.save_intake(self.conversation_id, transition.confirmed_intake)
			if transition.forward:
				if gateway is None:
					raise RuntimeError("a gateway is required once the intake is confirmed")
				async with aclosing(self._stream_reply(gateway, context, store)) as events:
					async for event in events:
						yield event
			yield ControllerEvent("done", {"phase": self.session.phase.value})
		finally:
			self.busy = False

	async def _stream_reply(
		self,
		gateway: ChatGateway,
		context: Optional[ChatContext],
		store: Optional[MessageStore],
	) -> AsyncIterator[ControllerEvent]:
		turn_id = new_turn_id()
		content = ""
		system_prompt = self.system_prompt(context)
		chunks = gateway.stream_chat(system_prompt, self.session.transcript.history())
		try:
			async with aclosing(chunks), aclosing(iter_deltas(chunks)) as deltas:
				async for delta in deltas:
					content += delta
					self._set_transcript(self.session.transcript.write_open(turn_id, content))
					yield ControllerEvent("delta", {"id": turn_id, "delta": delta, "content": content})
			self._set_transcript(self.session.transcript.close())
		except GatewayError as exc:
			logger.warning("Gateway failure in conversation %s: %s (%s)", self.conversation_id, exc.message, exc.detail)
			self._set_transcript(self.session.transcript.discard_open())
			yield ControllerEvent("error", {
				"category": exc.category,
				"message": ERROR_MESSAGES.get(exc.category, exc.message),
			})
			return
		finally:
			# A reply cut short never stays open in the transcript
			self._set_transcript(self.session.transcript.discard_open())

		if not content:
			logger.info("Gateway stream for conversation %s ended without content", self.conversation_id)
			return
		turn = self.session.transcript.get(turn_id)

		documents = extract_documents(content)
		batch = None
		ops_doc = documents[FILE_OPS]
		if isinstance(ops_doc, Valid):
			try:
				batch = parse_batch(ops_doc.value)
			except ValueError as exc:
				logger.warning("Ignoring malformed FILE_OPS block: %s", exc)
		report_doc = documents[MENTOR_REPORT]
		report = report_doc.value if isinstance(report_doc, Valid) else None

		if store is not None:
			store.add_message(
				self.conversation_id,
				turn,
				file_ops=[op.to_dict() for op in batch] if batch else None,
				mentor_report=report,
			)
		yield ControllerEvent("turn", turn.to_dict())

		if batch:
			self.session = gate.propose(self.session, batch)
			yield ControllerEvent("file_ops", {"operations": [op.to_dict() for op in batch]})

		if isinstance(report_doc, Valid):
			saved = False
			if not self.session.submission_id:
				logger.debug("Mentor report in conversation %s has no submission to attach to", self.conversation_id)
			elif store is not None:
				saved = store.insert_mentor_report(self.session.submission_id, report_doc.value, report_doc.raw_text)
			yield ControllerEvent("mentor_report", {"report": report_doc.value, "saved": saved})

	def confirm_file_ops(self) -> OpsLogEntry:
		self.session, entry = gate.confirm(self.session, self.filesystem)
		return entry

	def reject_file_ops(self) -> None:
		self.session = gate.reject(self.session)

	def view(self) -> Dict[str, Any]:
		session = self.session
		return {
			"id": session.conversation_id,
			"submission_id": session.submission_id,
			"phase": session.phase.value,
			"pending_intake": session.pending_intake.to_dict() if session.pending_intake else None,
			"intake": session.intake.to_dict() if session.intake else None,
			"messages": [t.to_dict() for t in session.transcript.turns],
			"pending_file_ops": [op.to_dict() for op in session.pending_file_ops] if session.pending_file_ops else None,
			"ops_log": [entry.to_dict() for entry in session.ops_log],
			"streaming": self.busy,
		}
