from datetime import date
from typing import List, Optional
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.orm import Session

from chatly.config import settings
from chatly.models.db import get_db
from chatly.schemas import Channel, ContactFilters, ContactOut, ContactUpdate
from chatly.services import contact_service

router = APIRouter(prefix="/api/v1/contacts", tags=["contacts"])

class TenantReq(BaseModel):
    platform_client_id: int

class LinkReq(TenantReq):
    target_contact_id: int

@router.get("", response_model=List[ContactOut])
def list_contacts(
    platform_client_id: int,
    channels: Optional[List[Channel]] = Query(None),
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    q: Optional[str] = None,
    db: Session = Depends(get_db),
):
    filters = ContactFilters(
        platform_client_id=platform_client_id,
        channels=channels,
        start_date=start_date,
        end_date=end_date,
        search_query=q,
    )
    return contact_service.get_contacts(db, filters)

@router.get("/search", response_model=List[ContactOut])
def search_contacts(
    platform_client_id: int,
    q: str = "",
    exclude_contact_id: Optional[int] = None,
    db: Session = Depends(get_db),
):
    # Too short to be a useful search while the operator is still typing
    if len(q.strip()) < settings.CONTACT_SEARCH_MIN_LENGTH:
        return []
    return contact_service.search_contacts_for_linking(db, platform_client_id, q.strip(), exclude_contact_id)

@router.patch("/{contact_id}", response_model=ContactOut)
def update_contact(contact_id: int, platform_client_id: int, body: ContactUpdate, db: Session = Depends(get_db)):
    updates = body.model_dump(exclude_unset=True)
    if "email" in updates and updates["email"] is not None:
        updates["email"] = str(updates["email"])
    return contact_service.update_contact(db, contact_id, updates, platform_client_id)

@router.get("/{contact_id}/linked", response_model=List[ContactOut])
def linked_contacts(contact_id: int, platform_client_id: int, db: Session = Depends(get_db)):
    return contact_service.get_linked_contacts(db, contact_id, platform_client_id)

@router.post("/{contact_id}/link", response_model=List[ContactOut])
def link_contact(contact_id: int, req: LinkReq, db: Session = Depends(get_db)):
    contact_service.link_contacts(db, contact_id, req.target_contact_id, req.platform_client_id)
    return contact_service.get_linked_contacts(db, contact_id, req.platform_client_id)

@router.post("/{contact_id}/unlink", response_model=ContactOut)
def unlink_contact(contact_id: int, req: TenantReq, db: Session = Depends(get_db)):
    return contact_service.unlink_contact(db, contact_id, req.platform_client_id)

@router.post("/{contact_id}/set-master", response_model=List[ContactOut])
def set_master(contact_id: int, req: TenantReq, db: Session = Depends(get_db)):
    return contact_service.set_as_master(db, contact_id, req.platform_client_id)
