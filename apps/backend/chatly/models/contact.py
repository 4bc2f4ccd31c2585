from sqlalchemy import Column, String, Integer, Float, JSON, TIMESTAMP, ForeignKey, UniqueConstraint
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from .db import Base

class SocialContact(Base):
    """
    One row per (platform, platform_user_id) seen by a tenant.

    Rows with master_contact_id NULL are masters; the others are linked
    to exactly one master (single level, never a chain).
    """
    __tablename__ = "social_contacts"
    __table_args__ = (
        UniqueConstraint("platform_client_id", "platform", "platform_user_id", name="uq_social_contact_identity"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    platform_client_id = Column(Integer, ForeignKey("platform_clients.id"), index=True, nullable=False)
    platform = Column(String, nullable=False)          # 'whatsapp'|'instagram'|'messenger'
    platform_user_id = Column(String, nullable=False)

    # Identity
    name = Column(String, index=True)
    surname = Column(String)
    display_name = Column(String, index=True)
    email = Column(String, index=True)
    phone = Column(String)
    company = Column(String)
    age = Column(Integer)

    # Lead qualification
    qualification_status = Column(String)
    lead_score = Column(Integer)
    lead_source = Column(String)
    plan_suggested = Column(String)
    volume = Column(Integer)
    goal = Column(JSON)
    profile_data = Column(JSON)
    data_completeness = Column(Float)

    first_contact = Column(TIMESTAMP(timezone=True), server_default=func.now())
    last_interaction = Column(TIMESTAMP(timezone=True), index=True)

    master_contact_id = Column(Integer, ForeignKey("social_contacts.id"), index=True, nullable=True)

    platform_client = relationship("PlatformClient", back_populates="contacts")
    conversations = relationship("Conversation", back_populates="social_contact")

    @property
    def is_master(self) -> bool:
        return self.master_contact_id is None

    @property
    def effective_master_id(self) -> int:
        return self.master_contact_id if self.master_contact_id is not None else self.id
