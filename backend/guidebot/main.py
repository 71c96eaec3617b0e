import asyncio
import logging

from fastapi import FastAPI

from .db import Base, engine, SessionLocal, ensure_schema
from .cleanup import purge_stale_conversations
from .settings import settings
from .routers import health
from .routers import chat
from .routers import conversations
from .routers import milestones

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logging.getLogger("httpx").setLevel(logging.WARNING)
logger = logging.getLogger(__name__)

app = FastAPI(title="Guided Tutoring API")
app.include_router(health.router)
app.include_router(chat.router)
app.include_router(conversations.router)
app.include_router(milestones.router)


def _run_cleanup() -> None:
	db = SessionLocal()
	try:
		removed = purge_stale_conversations(db, settings.retention_days)
		if removed:
			logger.info("Purged %d stale conversations", removed)
	except Exception:
		logger.exception("Conversation cleanup failed")
	finally:
		db.close()


async def _cleanup_watcher():
	while True:
		await asyncio.sleep(24 * 60 * 60)
		_run_cleanup()


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	Base.metadata.create_all(bind=engine)
	# Apply lightweight dev migrations
	try:
		ensure_schema()
	except Exception:
		logger.exception("Schema migration failed")
	# Best-effort cleanup at startup, then daily
	_run_cleanup()
	asyncio.create_task(_cleanup_watcher())
