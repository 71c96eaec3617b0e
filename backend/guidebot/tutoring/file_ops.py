"""
File operations proposed by the assistant and the confirmation gate in front
of them.

A batch parsed from a ``FILE_OPS`` block is only ever *proposed*. Nothing
touches the project tree until :func:`confirm` runs, and :func:`reject` drops
the batch without calling the file system at all.
"""

from __future__ import annotations
import dataclasses
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

from .filesystem import FileSystem

if TYPE_CHECKING:
	from .session import ConversationSession


logger = logging.getLogger(__name__)

FILE_ACTIONS = ("create", "update", "delete", "rename", "export")


class NoPendingOperationsError(RuntimeError):
	"""Raised when confirming while no batch is waiting for review."""


@dataclass(frozen=True)
class FileOperation:
	action: str
	path: str = ""
	content: Optional[str] = None
	new_name: Optional[str] = None
	recursive: bool = False
	language: Optional[str] = None
	filename: Optional[str] = None

	@classmethod
	def from_dict(cls, data: Dict[str, Any]) -> "FileOperation":
		if not isinstance(data, dict):
			raise ValueError("file operation must be a JSON object")
		action = data.get("action")
		if not isinstance(action, str) or not action:
			raise ValueError("file operation is missing an action")
		path = data.get("path") or ""
		if action != "export" and not isinstance(path, str):
			raise ValueError(f"{action} operation has an invalid path")
		content = data.get("content")
		new_name = data.get("newName") or data.get("newPath") or data.get("new_name")
		return cls(
			action=action,
			path=str(path),
			content=content if isinstance(content, str) else None,
			new_name=str(new_name) if new_name else None,
			recursive=bool(data.get("recursive", False)),
			language=data.get("language") if isinstance(data.get("language"), str) else None,
			filename=data.get("filename") if isinstance(data.get("filename"), str) else None,
		)

	def to_dict(self) -> Dict[str, Any]:
		out: Dict[str, Any] = {"action": self.action, "path": self.path}
		if self.content is not None:
			out["content"] = self.content
		if self.new_name is not None:
			out["newName"] = self.new_name
		if self.recursive:
			out["recursive"] = True
		if self.language is not None:
			out["language"] = self.language
		if self.filename is not None:
			out["filename"] = self.filename
		return out


def parse_batch(value: Any) -> Tuple[FileOperation, ...]:
	"""Accept a single operation object or an array of them."""
	items = value if isinstance(value, list) else [value]
	if not items:
		raise ValueError("file operation batch is empty")
	return tuple(FileOperation.from_dict(item) for item in items)


@dataclass(frozen=True)
class OperationResult:
	operation: FileOperation
	status: str  # ok | error | unknown-action
	error: Optional[str] = None
	payload: Optional[str] = None

	def to_dict(self) -> Dict[str, Any]:
		out = {**self.operation.to_dict(), "status": self.status}
		if self.error is not None:
			out["error"] = self.error
		if self.payload is not None:
			out["payload"] = self.payload
		return out


@dataclass(frozen=True)
class OpsLogEntry:
	results: Tuple[OperationResult, ...]
	timestamp: datetime = field(default_factory=datetime.utcnow)

	def to_dict(self) -> Dict[str, Any]:
		return {
			"timestamp": self.timestamp.isoformat(),
			"ops": [r.to_dict() for r in self.results],
		}


def _dispatch(op: FileOperation, fs: FileSystem) -> Optional[str]:
	if op.action == "create":
		fs.create_file(op.path, op.content or "", op.language or "text")
	elif op.action == "update":
		fs.update_file(op.path, op.content or "")
	elif op.action == "delete":
		fs.delete_file(op.path, op.recursive)
	elif op.action == "rename":
		fs.rename_file(op.path, op.new_name or "")
	elif op.action == "export":
		return fs.export_project()
	return None


def apply_batch(batch: Tuple[FileOperation, ...], fs: FileSystem) -> OpsLogEntry:
	"""Apply ``batch`` in order; one failure never stops the others."""
	results: List[OperationResult] = []
	for op in batch:
		if op.action not in FILE_ACTIONS:
			results.append(OperationResult(op, "unknown-action"))
			continue
		try:
			payload = _dispatch(op, fs)
		except Exception as exc:
			logger.info("File operation %s %s failed: %s", op.action, op.path, exc)
			results.append(OperationResult(op, "error", error=str(exc)))
			continue
		results.append(OperationResult(op, "ok", payload=payload))
	return OpsLogEntry(results=tuple(results))


def propose(session: "ConversationSession", batch: Tuple[FileOperation, ...]) -> "ConversationSession":
	"""Hold ``batch`` for review, replacing anything already pending."""
	if session.pending_file_ops is not None:
		logger.info("Replacing pending file operations for conversation %s", session.conversation_id)
	return dataclasses.replace(session, pending_file_ops=tuple(batch))


def confirm(session: "ConversationSession", fs: FileSystem) -> Tuple["ConversationSession", OpsLogEntry]:
	if session.pending_file_ops is None:
		raise NoPendingOperationsError("No file operations are waiting for confirmation")
	entry = apply_batch(session.pending_file_ops, fs)
	updated = dataclasses.replace(
		session,
		pending_file_ops=None,
		ops_log=session.ops_log + (entry,),
	)
	return updated, entry


def reject(session: "ConversationSession") -> "ConversationSession":
	return dataclasses.replace(session, pending_file_ops=None)
