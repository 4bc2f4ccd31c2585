from typing import Dict, List
from sqlalchemy.orm import Session, joinedload

from chatly.models.conversation import Conversation
from chatly.models.message import Message
from chatly.schemas import ContactOut, ConversationOut, MessageOut
from chatly.services.errors import NotFoundError


def get_conversation(db: Session, conversation_id: int) -> Conversation:
    conversation = db.query(Conversation).filter(Conversation.id == conversation_id).first()
    if not conversation:
        raise NotFoundError("Conversation", conversation_id)
    return conversation


def get_conversations(db: Session, platform_client_id: int, channel: str) -> List[ConversationOut]:
    """
    Inbox list for one channel: newest conversations first, each with its
    contact and only its latest message.

    Two queries whatever the number of conversations: one for the
    conversations (contact joined in), one for their messages.
    """
    conversations = (
        db.query(Conversation)
        .options(joinedload(Conversation.social_contact))
        .filter(
            Conversation.platform_client_id == platform_client_id,
            Conversation.channel == channel,
        )
        .order_by(Conversation.started_at.desc(), Conversation.id.desc())
        .all()
    )
    if not conversations:
        return []

    messages = (
        db.query(Message)
        .filter(Message.conversation_id.in_([c.id for c in conversations]))
        .order_by(Message.created_at.desc(), Message.id.desc())
        .all()
    )

    # First hit per conversation is the latest one
    last_by_conversation: Dict[int, Message] = {}
    for msg in messages:
        last_by_conversation.setdefault(msg.conversation_id, msg)

    result = []
    for conv in conversations:
        last = last_by_conversation.get(conv.id)
        result.append(
            ConversationOut(
                id=conv.id,
                platform_client_id=conv.platform_client_id,
                social_contact_id=conv.social_contact_id,
                channel=conv.channel,
                status=conv.status,
                started_at=conv.started_at,
                closed_at=conv.closed_at,
                social_contact=ContactOut.model_validate(conv.social_contact) if conv.social_contact else None,
                messages=[MessageOut.model_validate(last)] if last else [],
            )
        )
    return result
