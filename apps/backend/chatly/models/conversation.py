from sqlalchemy import Column, Integer, String, TIMESTAMP, ForeignKey
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from .db import Base

class Conversation(Base):
    __tablename__ = "conversations"
    id = Column(Integer, primary_key=True, autoincrement=True)
    platform_client_id = Column(Integer, ForeignKey("platform_clients.id"), index=True, nullable=False)
    social_contact_id = Column(Integer, ForeignKey("social_contacts.id"), index=True, nullable=False)
    channel = Column(String, index=True)    # 'whatsapp'|'instagram'|'messenger'
    status = Column(String, default="open")  # 'open'|'closed'

    started_at = Column(TIMESTAMP(timezone=True), server_default=func.now(), nullable=False)
    closed_at = Column(TIMESTAMP(timezone=True))

    platform_client = relationship("PlatformClient", back_populates="conversations")
    social_contact = relationship("SocialContact", back_populates="conversations")
    messages = relationship("Message", back_populates="conversation", cascade="all, delete-orphan")
