from datetime import date, datetime
from typing import Any, List, Literal, Optional
from pydantic import BaseModel, ConfigDict, EmailStr, Field

Channel = Literal["whatsapp", "instagram", "messenger"]
SenderType = Literal["user", "human_agent", "ai", "bot"]
OutboundSenderType = Literal["human_agent", "ai", "bot"]


class ContactOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    platform_client_id: int
    platform: str
    platform_user_id: str
    name: str | None = None
    surname: str | None = None
    display_name: str | None = None
    email: str | None = None
    phone: str | None = None
    company: str | None = None
    age: int | None = None
    qualification_status: str | None = None
    lead_score: int | None = None
    lead_source: str | None = None
    plan_suggested: str | None = None
    volume: int | None = None
    goal: Any = None
    profile_data: Any = None
    data_completeness: float | None = None
    first_contact: datetime | None = None
    last_interaction: datetime | None = None
    master_contact_id: int | None = None


class ContactUpdate(BaseModel):
    """Fields an operator may edit from the lead panel. Grouping goes through the link endpoints."""
    model_config = ConfigDict(extra="forbid")

    name: str | None = None
    surname: str | None = None
    display_name: str | None = None
    email: EmailStr | None = None
    phone: str | None = None
    company: str | None = None
    age: int | None = Field(default=None, ge=0, le=150)
    qualification_status: str | None = None
    lead_score: int | None = Field(default=None, ge=0, le=100)
    lead_source: str | None = None
    plan_suggested: str | None = None
    volume: int | None = Field(default=None, ge=0)
    goal: Any = None
    profile_data: dict | None = None


class ContactFilters(BaseModel):
    platform_client_id: int
    search_query: Optional[str] = None
    channels: Optional[List[str]] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None


class MessageOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    conversation_id: int | None = None
    social_contact_id: int
    direction: str
    sender_type: str | None = None
    message_type: str | None = None
    content_text: str | None = None
    content_media: Any = None
    platform_message_id: str | None = None
    created_at: datetime | None = None


class ConversationOut(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    platform_client_id: int
    social_contact_id: int
    channel: str | None = None
    status: str | None = None
    started_at: datetime | None = None
    closed_at: datetime | None = None
    social_contact: ContactOut | None = None
    messages: List[MessageOut] = []
