from __future__ import annotations
from datetime import datetime, timedelta
from sqlalchemy import delete
from sqlalchemy.orm import Session

from .models import Conversation, ConversationMessage


def purge_stale_conversations(db: Session, days: int = 7) -> int:
	threshold = datetime.utcnow() - timedelta(days=days)
	# Only conversations that never got past the intake handshake are purged
	stale_ids = [
		row.id
		for row in db.query(Conversation.id)
		.filter(Conversation.updated_at < threshold, Conversation.intake_confirmed.is_(False))
		.all()
	]
	removed = 0
	if stale_ids:
		db.execute(delete(ConversationMessage).where(ConversationMessage.conversation_id.in_(stale_ids)))
		res = db.execute(delete(Conversation).where(Conversation.id.in_(stale_ids)))
		removed = res.rowcount or 0
	db.commit()
	return removed
