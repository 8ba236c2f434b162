# gemini_chat/services/store.py
import datetime
import logging
from typing import List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from gemini_chat.database import Database
from gemini_chat.exceptions import StorageError
from gemini_chat.models.conversation import Conversation
from gemini_chat.models.message import Message, Role
from gemini_chat.schemas.conversation import ConversationOut
from gemini_chat.schemas.message import MessageOut

logger = logging.getLogger(__name__)

_TICK = datetime.timedelta(microseconds=1)


def _next_timestamp(db: Session, conversation_id: str) -> datetime.datetime:
    """Now, or one tick after the newest message if the clock has not moved past it."""
    now = datetime.datetime.utcnow()
    last = (
        db.query(Message.created_at)
        .filter(Message.conversation_id == conversation_id)
        .order_by(Message.created_at.desc())
        .limit(1)
        .scalar()
    )
    if last is not None and now <= last:
        now = last + _TICK
    return now


def _new_message(db: Session, conversation_id: str, role, content: str, raw_content=None,
                 thinking=None, thinking_time=None) -> Message:
    msg = Message(
        conversation_id=conversation_id,
        role=Role(role).value,
        content=content,
        raw_content=content if raw_content is None else raw_content,
        thinking=thinking,
        thinking_time=thinking_time,
        created_at=_next_timestamp(db, conversation_id),
    )
    db.add(msg)
    db.flush()
    return msg


class ConversationStore:
    """CRUD over conversations and their messages."""

    def __init__(self, database: Database):
        self.database = database

    def _run(self, what: str, fn):
        try:
            with self.database.session() as db:
                return fn(db)
        except SQLAlchemyError as e:
            logger.exception("Storage failure while %s", what)
            raise StorageError(f"error {what}: {e}") from e

    def create_conversation(
        self, title: str, model: str, exchange: Optional[Tuple[str, str]] = None
    ) -> ConversationOut:
        """
        Create a conversation, optionally with its first (user, assistant) pair,
        in one transaction.
        """
        def _create(db: Session):
            now = datetime.datetime.utcnow()
            convo = Conversation(title=title, model=model, created_at=now, updated_at=now)
            db.add(convo)
            db.flush()
            if exchange is not None:
                user_text, reply = exchange
                _new_message(db, convo.id, Role.USER, user_text)
                _new_message(db, convo.id, Role.ASSISTANT, reply)
            return ConversationOut.model_validate(convo)

        return self._run("creating conversation", _create)

    def add_message(self, conversation_id: str, role, content: str, raw_content: Optional[str] = None,
                    thinking: Optional[str] = None, thinking_time: Optional[float] = None) -> MessageOut:
        role = Role(role)

        def _add(db: Session):
            msg = _new_message(db, conversation_id, role, content, raw_content, thinking, thinking_time)
            return MessageOut.model_validate(msg)

        return self._run("adding message", _add)

    def add_exchange(self, conversation_id: str, user_text: str, reply: str) -> Tuple[MessageOut, MessageOut]:
        """Store a user message and its reply, and bump updated_at, atomically."""
        def _add(db: Session):
            user_msg = _new_message(db, conversation_id, Role.USER, user_text)
            bot_msg = _new_message(db, conversation_id, Role.ASSISTANT, reply)
            db.query(Conversation).filter(Conversation.id == conversation_id).update(
                {Conversation.updated_at: datetime.datetime.utcnow()}
            )
            return MessageOut.model_validate(user_msg), MessageOut.model_validate(bot_msg)

        return self._run("adding exchange", _add)

    def get_messages(self, conversation_id: str) -> List[MessageOut]:
        def _get(db: Session):
            msgs = (
                db.query(Message)
                .filter(Message.conversation_id == conversation_id)
                .order_by(Message.created_at.asc())
                .all()
            )
            return [MessageOut.model_validate(m) for m in msgs]

        return self._run("retrieving messages", _get)

    def get_conversation(self, conversation_id: str) -> Optional[ConversationOut]:
        """Returns None when no conversation has this id."""
        def _get(db: Session):
            convo = db.query(Conversation).filter(Conversation.id == conversation_id).first()
            return ConversationOut.model_validate(convo) if convo else None

        return self._run("retrieving conversation", _get)

    def list_conversations(self) -> List[ConversationOut]:
        def _list(db: Session):
            convos = db.query(Conversation).order_by(Conversation.updated_at.desc()).all()
            return [ConversationOut.model_validate(c) for c in convos]

        return self._run("retrieving conversations", _list)

    def touch_conversation(self, conversation_id: str) -> None:
        def _touch(db: Session):
            db.query(Conversation).filter(Conversation.id == conversation_id).update(
                {Conversation.updated_at: datetime.datetime.utcnow()}
            )

        self._run("updating conversation", _touch)

    def delete_conversation(self, conversation_id: str) -> bool:
        """Delete a conversation and all its messages. False if it did not exist."""
        def _delete(db: Session):
            db.query(Message).filter(Message.conversation_id == conversation_id).delete(
                synchronize_session=False
            )
            deleted = db.query(Conversation).filter(Conversation.id == conversation_id).delete(
                synchronize_session=False
            )
            return deleted > 0

        return self._run("deleting conversation", _delete)
