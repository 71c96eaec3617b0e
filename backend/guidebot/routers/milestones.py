"""
Milestone generation

Asks the gateway for a structured learning roadmap for a submitted project and
stores it as milestones with tasks. The model is forced to answer through a
single function tool so the reply is machine-readable.
"""

from __future__ import annotations
import logging
from datetime import date
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from ..db import get_db
from ..gateway_client import GatewayClient, GatewayError, get_gateway_factory
from ..models import Milestone, MilestoneTask

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/milestones", tags=["milestones"])


ROADMAP_SYSTEM_PROMPT = """You are a project planning expert for a student co-building platform. Analyze a student's project and create a structured learning roadmap with milestones and tasks.

GUIDELINES:
1. Create 4-6 milestones that build progressively
2. Each milestone should have 3-5 concrete tasks
3. Tasks should be specific, actionable, and educational
4. Consider the student's skill score when determining complexity
5. Align milestones with the project deadline
6. Focus on building real skills, not just completing the project
7. Include learning objectives in milestone descriptions

MILESTONE STRUCTURE:
- Start with project setup and foundation
- Progress through core features
- Include testing and documentation
- End with deployment and polish

TASK GUIDELINES:
- Each task should take 1-4 hours
- Include clear acceptance criteria in description
- Balance coding tasks with learning tasks
- Consider dependencies between tasks"""

_TASK_SCHEMA: Dict[str, Any] = {
	"type": "object",
	"properties": {
		"title": {"type": "string", "description": "Specific, actionable task title"},
		"description": {"type": "string", "description": "What to do and acceptance criteria"},
		"order_index": {"type": "number", "description": "Order within the milestone (0-based)"},
	},
	"required": ["title", "description", "order_index"],
	"additionalProperties": False,
}

ROADMAP_TOOL: Dict[str, Any] = {
	"type": "function",
	"function": {
		"name": "create_project_roadmap",
		"description": "Create a structured project roadmap with milestones and tasks",
		"parameters": {
			"type": "object",
			"properties": {
				"milestones": {
					"type": "array",
					"items": {
						"type": "object",
						"properties": {
							"title": {"type": "string", "description": "Clear, concise milestone title"},
							"description": {"type": "string", "description": "What the student will learn/accomplish"},
							"order_index": {"type": "number", "description": "Order of this milestone (0-based)"},
							"tasks": {"type": "array", "items": _TASK_SCHEMA},
						},
						"required": ["title", "description", "order_index", "tasks"],
						"additionalProperties": False,
					},
				},
			},
			"required": ["milestones"],
			"additionalProperties": False,
		},
	},
}


class GenerateRequest(BaseModel):
	submission_id: str
	project_title: str
	project_description: str
	tech_stack: List[str] = Field(default_factory=list)
	deadline: date
	skill_score: int = Field(default=0, ge=0, le=15)


def skill_band(score: int) -> str:
	if score <= 5:
		return "Beginner"
	if score <= 10:
		return "Intermediate"
	return "Advanced"


def _build_roadmap_prompt(req: GenerateRequest) -> str:
	return (
		"Generate a project roadmap for the following student project:\n\n"
		f"PROJECT TITLE: {req.project_title}\n\n"
		f"PROJECT DESCRIPTION:\n{req.project_description}\n\n"
		f"TECH STACK: {', '.join(req.tech_stack)}\n\n"
		f"DEADLINE: {req.deadline.isoformat()}\n\n"
		f"STUDENT SKILL SCORE: {req.skill_score}/15 ({skill_band(req.skill_score)})\n\n"
		"Create a structured learning roadmap with milestones and tasks that will help this student "
		"build real skills while completing their project."
	)


def days_per_milestone(deadline: date, milestone_count: int, today: Optional[date] = None) -> int:
	today = today or date.today()
	total_days = max(1, (deadline - today).days)
	return total_days // max(1, milestone_count)


def _order_index(value: Any, fallback: int) -> int:
	try:
		return int(value)
	except (TypeError, ValueError):
		return fallback


@router.post("/generate")
async def generate_milestones(
	req: GenerateRequest,
	db: Session = Depends(get_db),
	gateway_factory: Callable[[], GatewayClient] = Depends(get_gateway_factory),
):
	try:
		client = gateway_factory()
	except ValueError as e:
		raise HTTPException(status_code=500, detail=str(e))
	logger.info("Generating milestones for submission %s", req.submission_id)
	try:
		roadmap = await client.call_tool(ROADMAP_SYSTEM_PROMPT, _build_roadmap_prompt(req), ROADMAP_TOOL)
	except GatewayError as e:
		raise HTTPException(status_code=e.status_code, detail=e.message)
	finally:
		await client.aclose()

	milestones = roadmap.get("milestones") if isinstance(roadmap, dict) else None
	if not isinstance(milestones, list) or not milestones:
		raise HTTPException(status_code=500, detail="Failed to generate roadmap structure")

	today = date.today()
	step = days_per_milestone(req.deadline, len(milestones), today)
	created: List[Dict[str, Any]] = []
	for idx, m in enumerate(milestones):
		if not isinstance(m, dict):
			continue
		order = _order_index(m.get("order_index"), idx)
		due = date.fromordinal(today.toordinal() + step * (order + 1))
		tasks = [t for t in (m.get("tasks") or []) if isinstance(t, dict)]
		try:
			row = Milestone(
				submission_id=req.submission_id,
				title=str(m.get("title", f"Milestone {idx + 1}")).strip(),
				description=str(m.get("description", "")).strip(),
				order_index=order,
				due_date=due,
				source="ai",
				status="pending",
			)
			db.add(row)
			db.flush()
			for t_idx, t in enumerate(tasks):
				db.add(MilestoneTask(
					milestone_id=row.id,
					title=str(t.get("title", f"Task {t_idx + 1}")).strip(),
					description=str(t.get("description", "")).strip(),
					order_index=_order_index(t.get("order_index"), t_idx),
					status="pending",
					progress=0,
				))
			db.commit()
		except Exception:
			db.rollback()
			logger.exception("Failed to store milestone %r", m.get("title"))
			continue
		created.append({
			"id": row.id,
			"title": row.title,
			"description": row.description,
			"order_index": row.order_index,
			"due_date": due.isoformat(),
			"tasks": tasks,
		})

	logger.info("Stored %d milestones for submission %s", len(created), req.submission_id)
	return {"success": True, "milestones_created": len(created), "milestones": created}
