"""
Conversation API

Endpoints for the guided-tutoring chat: start or rename a conversation, send
messages (answered as a server-sent event stream), review and apply file
operations the assistant proposed, and browse or export the project tree.

Live conversations are kept in memory; the database holds a best-effort mirror
used to list and restore them.
"""

from __future__ import annotations
import json
import logging
from contextlib import aclosing
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response, StreamingResponse
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..gateway_client import GatewayClient, get_gateway_factory
from ..settings import settings
from ..store import ConversationStore
from ..tutoring.controller import ChatContext, ControllerEvent, ConversationController
from ..tutoring.file_ops import NoPendingOperationsError
from ..tutoring.filesystem import FileSystemError, InMemoryFileSystem
from ..tutoring.guard import is_code_request
from ..tutoring.session import Phase, new_session


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/conversations", tags=["conversations"])

# Live conversations by id
_sessions: Dict[str, ConversationController] = {}


class StartRequest(BaseModel):
	title: Optional[str] = None
	submission_id: Optional[str] = None
	# Initial project tree: path -> file content
	files: Dict[str, str] = Field(default_factory=dict)


class RenameRequest(BaseModel):
	title: str


class FolderRequest(BaseModel):
	path: str


class MessageRequest(BaseModel):
	text: str
	current_task: Optional[str] = None
	current_code: Optional[str] = None
	allow_file_access: bool = False
	progress_entries: Optional[List[Dict[str, Any]]] = None


def _get_controller(conversation_id: str, db: Session) -> ConversationController:
	controller = _sessions.get(conversation_id)
	if controller is not None:
		return controller
	session = ConversationStore(db).load_session(conversation_id)
	if session is None:
		raise HTTPException(status_code=404, detail="Conversation not found")
	controller = ConversationController(session, code_limit=settings.code_snippet_limit)
	_sessions[conversation_id] = controller
	return controller


def _sse(event: ControllerEvent) -> str:
	return f"event: {event.type}\ndata: {json.dumps(event.data)}\n\n"


@router.post("", status_code=201)
def start_conversation(req: StartRequest, db: Session = Depends(get_db)):
	session = new_session(submission_id=req.submission_id)
	controller = ConversationController(
		session,
		filesystem=InMemoryFileSystem(req.files),
		code_limit=settings.code_snippet_limit,
	)
	_sessions[session.conversation_id] = controller
	store = ConversationStore(db)
	title = (req.title or "").strip() or f"Tutoring chat - {datetime.utcnow():%Y-%m-%d %H:%M}"
	if store.create_conversation(session, title):
		store.add_message(session.conversation_id, session.transcript.turns[0])
	return controller.view()


@router.get("")
def list_conversations(db: Session = Depends(get_db)):
	rows = ConversationStore(db).list_conversations()
	return [
		{
			"id": row.id,
			"title": row.title,
			"submission_id": row.submission_id,
			"intake_confirmed": bool(row.intake_confirmed),
			"updated_at": row.updated_at.isoformat() if row.updated_at else None,
			"last_message_at": row.last_message_at.isoformat() if row.last_message_at else None,
		}
		for row in rows
	]


@router.get("/{conversation_id}")
def get_conversation(conversation_id: str, db: Session = Depends(get_db)):
	return _get_controller(conversation_id, db).view()


@router.patch("/{conversation_id}")
def rename_conversation(conversation_id: str, req: RenameRequest, db: Session = Depends(get_db)):
	title = (req.title or "").strip()
	if not title:
		raise HTTPException(status_code=400, detail="title is required")
	if not ConversationStore(db).update_title(conversation_id, title):
		raise HTTPException(status_code=404, detail="Conversation not found")
	return {"id": conversation_id, "title": title}


@router.delete("/{conversation_id}")
def delete_conversation(conversation_id: str, db: Session = Depends(get_db)):
	live = _sessions.pop(conversation_id, None)
	stored = ConversationStore(db).delete_conversation(conversation_id)
	if live is None and not stored:
		raise HTTPException(status_code=404, detail="Conversation not found")
	return {"ok": True}


@router.post("/{conversation_id}/messages")
async def send_message(
	conversation_id: str,
	req: MessageRequest,
	db: Session = Depends(get_db),
	gateway_factory: Callable[[], GatewayClient] = Depends(get_gateway_factory),
):
	text = (req.text or "").strip()
	if not text:
		raise HTTPException(status_code=400, detail="text is required")
	controller = _get_controller(conversation_id, db)
	if controller.busy:
		raise HTTPException(status_code=409, detail="A reply is still in progress")

	gateway: Optional[GatewayClient] = None
	if controller.session.phase is Phase.CONFIRMED and not is_code_request(text):
		try:
			gateway = gateway_factory()
		except ValueError as e:
			raise HTTPException(status_code=500, detail=str(e))

	context = ChatContext(
		current_task=req.current_task,
		current_code=req.current_code,
		allow_file_access=req.allow_file_access,
		progress_entries=req.progress_entries,
	)
	store = ConversationStore(db)

	async def _events():
		try:
			async with aclosing(controller.send(text, gateway=gateway, context=context, store=store)) as events:
				async for event in events:
					yield _sse(event)
		finally:
			if gateway is not None:
				await gateway.aclose()

	return StreamingResponse(_events(), media_type="text/event-stream")


@router.post("/{conversation_id}/file-ops/confirm")
def confirm_file_ops(conversation_id: str, db: Session = Depends(get_db)):
	controller = _get_controller(conversation_id, db)
	try:
		entry = controller.confirm_file_ops()
	except NoPendingOperationsError as e:
		raise HTTPException(status_code=409, detail=str(e))
	return entry.to_dict()


@router.post("/{conversation_id}/file-ops/reject")
def reject_file_ops(conversation_id: str, db: Session = Depends(get_db)):
	controller = _get_controller(conversation_id, db)
	had_pending = controller.session.pending_file_ops is not None
	controller.reject_file_ops()
	return {"ok": True, "rejected": had_pending}


@router.get("/{conversation_id}/file-ops/log")
def file_ops_log(conversation_id: str, db: Session = Depends(get_db)):
	controller = _get_controller(conversation_id, db)
	return [entry.to_dict() for entry in controller.session.ops_log]


@router.get("/{conversation_id}/files")
def list_files(conversation_id: str, dir: Optional[str] = None, db: Session = Depends(get_db)):
	controller = _get_controller(conversation_id, db)
	if dir:
		nodes = controller.filesystem.list_directory(dir)
		return {"files": [{"path": n.path, "type": n.type, "language": n.language} for n in nodes]}
	return {"files": controller.filesystem.structure()}


@router.post("/{conversation_id}/files/folders", status_code=201)
def create_folder(conversation_id: str, req: FolderRequest, db: Session = Depends(get_db)):
	controller = _get_controller(conversation_id, db)
	try:
		node = controller.filesystem.create_folder(req.path)
	except FileSystemError as e:
		raise HTTPException(status_code=409, detail=str(e))
	return {"path": node.path, "type": node.type}


@router.get("/{conversation_id}/files/export")
def export_files(conversation_id: str, db: Session = Depends(get_db)):
	controller = _get_controller(conversation_id, db)
	filename = f"project-{conversation_id}.json"
	return Response(
		content=controller.filesystem.export_project(),
		media_type="application/json",
		headers={"Content-Disposition": f'attachment; filename="{filename}"'},
	)
