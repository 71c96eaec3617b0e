from __future__ import annotations
import logging
from typing import Any, Callable, List, Optional

import httpx
from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict, Field

from ..gateway_client import GatewayClient, GatewayError, get_gateway_factory
from ..settings import settings
from ..tutoring.prompts import build_system_prompt, dump_manifest

logger = logging.getLogger(__name__)

router = APIRouter(tags=["chat"])


class ChatTurn(BaseModel):
	role: str
	content: str


class ChatRequest(BaseModel):
	# Accepts the camelCase body sent by browser clients
	model_config = ConfigDict(populate_by_name=True)

	messages: List[ChatTurn]
	current_task: Optional[str] = Field(default=None, alias="currentTask")
	current_code: Optional[str] = Field(default=None, alias="currentCode")
	project_files: Optional[List[str]] = Field(default=None, alias="projectFiles")
	project_structure: Optional[str] = Field(default=None, alias="projectStructure")
	project_files_content: Optional[Any] = Field(default=None, alias="projectFilesContent")
	progress_entries: Optional[Any] = Field(default=None, alias="progressEntries")


@router.post("/chat")
async def chat(req: ChatRequest, gateway_factory: Callable[[], GatewayClient] = Depends(get_gateway_factory)):
	"""Relay a streamed completion from the gateway, byte for byte."""
	try:
		client = gateway_factory()
	except ValueError as e:
		raise HTTPException(status_code=500, detail=str(e))
	system_prompt = build_system_prompt(
		current_task=req.current_task,
		current_code=req.current_code,
		code_limit=settings.code_snippet_limit,
		project_files=req.project_files,
		project_structure=req.project_structure,
		files_content=dump_manifest(req.project_files_content),
		progress_entries=dump_manifest(req.progress_entries),
	)
	logger.info("Processing chat request with %d messages", len(req.messages))
	try:
		response = await client.open_stream(system_prompt, [m.model_dump() for m in req.messages])
	except GatewayError as e:
		await client.aclose()
		raise HTTPException(status_code=e.status_code, detail=e.message)

	async def _relay():
		try:
			async for chunk in response.aiter_bytes():
				yield chunk
		except httpx.HTTPError as e:
			logger.warning("Gateway stream interrupted: %s", e)
		finally:
			await response.aclose()
			await client.aclose()

	return StreamingResponse(_relay(), media_type="text/event-stream")
