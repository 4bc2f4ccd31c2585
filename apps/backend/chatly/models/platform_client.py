from sqlalchemy import Column, Integer, String, TIMESTAMP
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from .db import Base

class PlatformClient(Base):
    __tablename__ = "platform_clients"
    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    created_at = Column(TIMESTAMP(timezone=True), server_default=func.now())

    contacts = relationship("SocialContact", back_populates="platform_client")
    conversations = relationship("Conversation", back_populates="platform_client")
