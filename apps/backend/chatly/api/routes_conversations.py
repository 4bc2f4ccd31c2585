from datetime import date, datetime
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from chatly.models.db import get_db
from chatly.schemas import Channel, ConversationOut, MessageOut, OutboundSenderType
from chatly.services.conversation_service import get_conversations
from chatly.services.message_service import get_messages, search_messages, send_message

router = APIRouter(prefix="/api/v1/conversations", tags=["conversations"])

class SendMessageReq(BaseModel):
    content: str
    sender_type: OutboundSenderType = "human_agent"

@router.get("", response_model=List[ConversationOut])
def list_conversations(platform_client_id: int, channel: Channel, db: Session = Depends(get_db)):
    return get_conversations(db, platform_client_id, channel)

@router.get("/{conversation_id}/messages", response_model=List[MessageOut])
def list_messages(
    conversation_id: int,
    limit: Optional[int] = Query(None, ge=1, le=200),
    before: Optional[datetime] = None,
    db: Session = Depends(get_db),
):
    return get_messages(db, conversation_id, limit=limit, before=before)

@router.get("/{conversation_id}/messages/search", response_model=List[MessageOut])
def find_messages(
    conversation_id: int,
    q: Optional[str] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    db: Session = Depends(get_db),
):
    return search_messages(db, conversation_id, query=q, start_date=start_date, end_date=end_date)

@router.post("/{conversation_id}/messages", response_model=MessageOut, status_code=201)
def post_message(conversation_id: int, req: SendMessageReq, db: Session = Depends(get_db)):
    return send_message(db, conversation_id, req.content, req.sender_type)
