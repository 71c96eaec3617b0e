import json
from datetime import datetime, timedelta

from guidebot.cleanup import purge_stale_conversations
from guidebot.models import Conversation, ConversationMessage, MentorReport
from guidebot.store import ConversationStore
from guidebot.tutoring.intake import IntakeRecord
from guidebot.tutoring.session import ConversationTurn, Phase, new_session


RECORD = IntakeRecord("Recipe site", "Django", "beginner", "1 month")


def _turn(role, content, minutes):
	return ConversationTurn(role=role, content=content, created_at=datetime(2026, 1, 1, 12, minutes))


def test_mirror_and_restore_a_conversation(db_session):
	store = ConversationStore(db_session)
	session = new_session("conv-1", submission_id="sub-1")

	assert store.create_conversation(session, "Recipe chat")
	assert store.add_message("conv-1", _turn("user", "hello", 1))
	assert store.add_message("conv-1", _turn("assistant", "Tell me about it", 2), file_ops=[{"action": "export", "path": ""}])
	assert store.save_intake("conv-1", RECORD)

	restored = store.load_session("conv-1")

	assert restored.phase is Phase.CONFIRMED
	assert restored.intake == RECORD
	assert restored.submission_id == "sub-1"
	assert [t.content for t in restored.transcript.turns] == ["hello", "Tell me about it"]

	row = db_session.get(Conversation, "conv-1")
	assert row.intake_confirmed is True
	assert row.last_message_at is not None
	stored = db_session.query(ConversationMessage).filter_by(content="Tell me about it").one()
	assert json.loads(stored.file_ops) == [{"action": "export", "path": ""}]


def test_unconfirmed_conversation_restores_without_intake(db_session):
	store = ConversationStore(db_session)
	store.create_conversation(new_session("conv-2"), "Chat")

	restored = store.load_session("conv-2")

	assert restored.phase is Phase.NO_INTAKE
	assert restored.transcript.turns == ()
	assert store.load_session("missing") is None


def test_failed_write_is_rolled_back_and_reported(db_session):
	store = ConversationStore(db_session)
	store.create_conversation(new_session("conv-3"), "Chat")
	turn = _turn("user", "once", 1)

	assert store.add_message("conv-3", turn)
	assert store.add_message("conv-3", turn) is False
	assert store.add_message("conv-3", _turn("user", "twice", 2))
	assert db_session.query(ConversationMessage).count() == 2


def test_save_intake_for_unknown_conversation(db_session):
	assert ConversationStore(db_session).save_intake("nope", RECORD) is False


def test_mentor_report_keeps_raw_text(db_session):
	store = ConversationStore(db_session)

	assert store.insert_mentor_report("sub-1", {"score": 7}, '{"score": 7}')

	row = db_session.query(MentorReport).one()
	assert row.submission_id == "sub-1"
	assert json.loads(row.report) == {"score": 7}
	assert row.raw_text == '{"score": 7}'


def test_delete_conversation_removes_messages(db_session):
	store = ConversationStore(db_session)
	store.create_conversation(new_session("conv-4"), "Chat")
	store.add_message("conv-4", _turn("user", "hi", 1))

	assert store.delete_conversation("conv-4") is True
	assert store.delete_conversation("conv-4") is False
	assert db_session.query(ConversationMessage).count() == 0


def test_purge_only_removes_old_unconfirmed_conversations(db_session):
	old = datetime.utcnow() - timedelta(days=10)
	db_session.add_all([
		Conversation(id="stale", title="a", updated_at=old),
		Conversation(id="kept-confirmed", title="b", updated_at=old, intake_confirmed=True),
		Conversation(id="fresh", title="c"),
		ConversationMessage(id="m1", conversation_id="stale", role="user", content="hi"),
	])
	db_session.commit()

	removed = purge_stale_conversations(db_session, days=7)

	assert removed == 1
	assert {c.id for c in db_session.query(Conversation).all()} == {"kept-confirmed", "fresh"}
	assert db_session.query(ConversationMessage).count() == 0


def test_restore_keeps_insertion_order_when_timestamps_tie(db_session):
	store = ConversationStore(db_session)
	store.create_conversation(new_session("conv-5"), "Chat")
	same = datetime(2026, 1, 1, 12, 0)

	store.add_message("conv-5", ConversationTurn(role="user", content="question", id="zz", created_at=same))
	store.add_message("conv-5", ConversationTurn(role="assistant", content="answer", id="aa", created_at=same))
	store.add_message("conv-5", ConversationTurn(role="user", content="follow-up", id="mm", created_at=same))

	restored = store.load_session("conv-5")

	assert [t.content for t in restored.transcript.turns] == ["question", "answer", "follow-up"]
	assert [m.seq for m in db_session.query(ConversationMessage).order_by(ConversationMessage.seq)] == [1, 2, 3]


def test_update_title(db_session):
	store = ConversationStore(db_session)
	store.create_conversation(new_session("conv-6"), "Old title")

	assert store.update_title("conv-6", "Budget app plan") is True
	assert db_session.get(Conversation, "conv-6").title == "Budget app plan"
	assert store.update_title("missing", "Anything") is False
