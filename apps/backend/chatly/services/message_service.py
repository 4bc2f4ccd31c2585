import logging
from datetime import date, datetime, time, timezone
from typing import List, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatly.config import settings
from chatly.models.contact import SocialContact
from chatly.models.message import Message
from chatly.schemas import MessageOut
from chatly.services.contact_service import LIKE_ESCAPE, escape_like
from chatly.services.conversation_service import get_conversation
from chatly.services.errors import InvalidOperationError
from chatly.services.realtime_service import publish_change

logger = logging.getLogger(__name__)

OUTBOUND_SENDERS = ("human_agent", "ai", "bot")


def get_messages(
    db: Session,
    conversation_id: int,
    limit: Optional[int] = None,
    before: Optional[datetime] = None,
) -> List[Message]:
    """
    One page of a conversation, oldest first.

    Args:
        conversation_id: Conversation to read
        limit: Page size (default MESSAGES_PAGE_SIZE)
        before: Only messages strictly older than this timestamp

    Returns:
        list: The `limit` most recent matching messages, in ascending order
    """
    limit = limit or settings.MESSAGES_PAGE_SIZE
    get_conversation(db, conversation_id)

    query = db.query(Message).filter(Message.conversation_id == conversation_id)
    if before is not None:
        query = query.filter(Message.created_at < before)

    page = query.order_by(Message.created_at.desc(), Message.id.desc()).limit(limit).all()
    page.reverse()
    return page


def search_messages(
    db: Session,
    conversation_id: int,
    query: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
) -> List[Message]:
    """Substring search over message text, optionally within a day range (both ends inclusive)."""
    get_conversation(db, conversation_id)

    q = db.query(Message).filter(Message.conversation_id == conversation_id)
    if query:
        q = q.filter(Message.content_text.ilike(f"%{escape_like(query)}%", escape=LIKE_ESCAPE))
    if start_date:
        q = q.filter(Message.created_at >= datetime.combine(start_date, time.min))
    if end_date:
        q = q.filter(Message.created_at <= datetime.combine(end_date, time.max))

    return q.order_by(Message.created_at, Message.id).all()


def send_message(
    db: Session,
    conversation_id: int,
    content: str,
    sender_type: str = "human_agent",
) -> Message:
    """
    Store an outbound message written from the inbox.

    Delivery to the social platform is done by the ingestion side, which
    watches the messages feed.
    """
    if not content or not content.strip():
        raise InvalidOperationError("Message content is empty")
    if sender_type not in OUTBOUND_SENDERS:
        raise InvalidOperationError(f"Unknown sender type: {sender_type}")

    conversation = get_conversation(db, conversation_id)
    now = datetime.now(timezone.utc)

    message = Message(
        conversation_id=conversation.id,
        social_contact_id=conversation.social_contact_id,
        direction="outbound",
        sender_type=sender_type,
        message_type="text",
        content_text=content,
        created_at=now,
    )
    db.add(message)
    db.query(SocialContact).filter(SocialContact.id == conversation.social_contact_id).update(
        {SocialContact.last_interaction: now}, synchronize_session=False
    )

    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise
    db.refresh(message)

    logger.info("Message %s sent on conversation %s by %s", message.id, conversation_id, sender_type)
    publish_change("messages", "INSERT", conversation.platform_client_id, new=MessageOut.model_validate(message))
    return message
