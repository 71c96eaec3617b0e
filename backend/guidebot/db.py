from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./guidebot.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema() -> None:
	try:
		inspector = inspect(engine)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "conversations" in tables:
		cols = {c["name"] for c in inspector.get_columns("conversations")}
		with engine.begin() as conn:
			if "last_message_at" not in cols:
				conn.exec_driver_sql("ALTER TABLE conversations ADD COLUMN last_message_at DATETIME")
	if "conversation_messages" in tables:
		cols = {c["name"] for c in inspector.get_columns("conversation_messages")}
		with engine.begin() as conn:
			if "file_ops" not in cols:
				conn.exec_driver_sql("ALTER TABLE conversation_messages ADD COLUMN file_ops TEXT")
			if "mentor_report" not in cols:
				conn.exec_driver_sql("ALTER TABLE conversation_messages ADD COLUMN mentor_report TEXT")
			if "seq" not in cols:
				conn.exec_driver_sql("ALTER TABLE conversation_messages ADD COLUMN seq INTEGER NOT NULL DEFAULT 0")
