from sqlalchemy import Column, Integer, Text, String, JSON, TIMESTAMP, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from .db import Base

class Message(Base):
    __tablename__ = "messages"
    id = Column(Integer, primary_key=True, autoincrement=True)
    conversation_id = Column(Integer, ForeignKey("conversations.id"), index=True)
    social_contact_id = Column(Integer, ForeignKey("social_contacts.id"), index=True, nullable=False)
    direction = Column(String, nullable=False)   # 'inbound' | 'outbound'
    sender_type = Column(String)                 # 'user' | 'human_agent' | 'ai' | 'bot'
    message_type = Column(String, default="text")
    content_text = Column(Text)
    content_media = Column(JSON)
    platform_message_id = Column(String)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), index=True)

    conversation = relationship("Conversation", back_populates="messages")
