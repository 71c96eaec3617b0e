from fastapi import APIRouter

from ..settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
def health():
	return {"status": "ok", "gateway_configured": bool(settings.gateway_api_key)}
