"""
Contact service: lead listing, lead edits and contact identity linking.

Linking keeps a one-level master/linked grouping over social_contacts:
a master has master_contact_id NULL, a linked contact points at exactly
one master, and no contact ever points at a linked contact. Every
mutating function below keeps that shape and commits all of its row
changes in one transaction.
"""
import logging
from datetime import datetime, time
from typing import Any, Dict, Iterable, List, Optional
from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from chatly.config import settings
from chatly.models.contact import SocialContact
from chatly.schemas import ContactFilters, ContactOut
from chatly.services.errors import InvalidOperationError, NotFoundError
from chatly.services.realtime_service import publish_change

logger = logging.getLogger(__name__)

LIKE_ESCAPE = "\\"

# Re-resolutions of a target group that moves while link_contacts waits for its locks
MAX_LOCK_ATTEMPTS = 3

# Fields update_contact() is allowed to write
EDITABLE_FIELDS = (
    "name", "surname", "display_name", "email", "phone", "company", "age",
    "qualification_status", "lead_score", "lead_source", "plan_suggested",
    "volume", "goal", "profile_data",
)


def escape_like(value: str) -> str:
    """Escape LIKE metacharacters so user input only ever matches literally"""
    return (
        value.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )


def _require(
    contact: Optional[SocialContact],
    contact_id: int,
    platform_client_id: Optional[int] = None,
) -> SocialContact:
    # A contact of another tenant is reported exactly like a missing one
    if not contact or (platform_client_id is not None and contact.platform_client_id != platform_client_id):
        raise NotFoundError("Contact", contact_id)
    return contact


def _get_contact(
    db: Session,
    contact_id: int,
    platform_client_id: Optional[int] = None,
) -> SocialContact:
    contact = db.query(SocialContact).filter(SocialContact.id == contact_id).first()
    return _require(contact, contact_id, platform_client_id)


def _lock_contacts(db: Session, contact_ids: Iterable[int]) -> Dict[int, SocialContact]:
    """
    Lock rows FOR UPDATE in one statement, in id order, so two requests
    touching the same rows can never wait on each other in a cycle.
    Rows are re-read even if already loaded in the session.
    """
    rows = (
        db.query(SocialContact)
        .filter(SocialContact.id.in_(sorted(set(contact_ids))))
        .order_by(SocialContact.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    return {row.id: row for row in rows}


def _children_of(db: Session, master_id: int, exclude_id: Optional[int] = None) -> List[SocialContact]:
    query = db.query(SocialContact).filter(SocialContact.master_contact_id == master_id)
    if exclude_id is not None:
        query = query.filter(SocialContact.id != exclude_id)
    return query.order_by(SocialContact.id).with_for_update().all()


def _commit(db: Session, changed: Iterable[SocialContact]) -> None:
    """Commit the pending changes, then broadcast the changed rows"""
    changed = list({contact.id: contact for contact in changed}.values())
    try:
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        raise

    for contact in changed:
        db.refresh(contact)
        publish_change(
            "social_contacts",
            "UPDATE",
            contact.platform_client_id,
            new=ContactOut.model_validate(contact),
        )


def _attach(db: Session, contact: SocialContact, master_id: int) -> List[SocialContact]:
    """
    Put contact under master_id, moving contact's own children along so
    the hierarchy stays one level deep. Flushes but does not commit.

    Children are re-read after every flush until none is left: a link
    committed by another request after the first read is moved too.

    Returns:
        list: Every row whose master_contact_id changed
    """
    changed = []
    if contact.master_contact_id != master_id:
        contact.master_contact_id = master_id
        changed.append(contact)

    while True:
        children = _children_of(db, contact.id, exclude_id=master_id)
        if not children:
            break
        for child in children:
            child.master_contact_id = master_id
        changed.extend(children)
        db.flush()

    db.flush()
    return changed


def get_contacts(db: Session, filters: ContactFilters) -> List[SocialContact]:
    """
    List the tenant's master contacts, newest interaction first.

    A channel filter keeps a master when any member of its group
    (itself or a linked contact) is on one of the channels.
    """
    query = db.query(SocialContact).filter(
        SocialContact.platform_client_id == filters.platform_client_id,
        SocialContact.master_contact_id.is_(None),
    )

    if filters.channels:
        members = (
            db.query(SocialContact.id, SocialContact.master_contact_id)
            .filter(
                SocialContact.platform_client_id == filters.platform_client_id,
                SocialContact.platform.in_(filters.channels),
            )
            .all()
        )
        master_ids = {master_id if master_id is not None else member_id for member_id, master_id in members}
        if not master_ids:
            return []
        query = query.filter(SocialContact.id.in_(master_ids))

    if filters.search_query and filters.search_query.strip():
        pattern = f"%{escape_like(filters.search_query.strip())}%"
        query = query.filter(
            or_(
                SocialContact.display_name.ilike(pattern, escape=LIKE_ESCAPE),
                SocialContact.name.ilike(pattern, escape=LIKE_ESCAPE),
            )
        )

    if filters.start_date:
        query = query.filter(SocialContact.first_contact >= datetime.combine(filters.start_date, time.min))
    if filters.end_date:
        query = query.filter(SocialContact.first_contact <= datetime.combine(filters.end_date, time.max))

    return (
        query.order_by(SocialContact.last_interaction.desc().nulls_last(), SocialContact.id.desc())
        .all()
    )


def update_contact(
    db: Session,
    contact_id: int,
    updates: Dict[str, Any],
    platform_client_id: Optional[int] = None,
) -> SocialContact:
    """
    Apply a partial lead edit.

    Args:
        contact_id: Contact to edit
        updates: Field -> value, restricted to EDITABLE_FIELDS
        platform_client_id: Tenant the contact must belong to

    Returns:
        SocialContact: The refreshed row
    """
    unknown = set(updates) - set(EDITABLE_FIELDS)
    if unknown:
        raise InvalidOperationError(f"Fields not editable: {', '.join(sorted(unknown))}")

    contact = _get_contact(db, contact_id, platform_client_id)
    if not updates:
        return contact

    for field, value in updates.items():
        setattr(contact, field, value)

    _commit(db, [contact])
    return contact


def get_linked_contacts(
    db: Session,
    contact_id: int,
    platform_client_id: Optional[int] = None,
) -> List[SocialContact]:
    """
    Return the whole group of a contact: its master plus every contact
    linked to that master, ordered by platform. The contact itself is
    always part of the result.
    """
    contact = _get_contact(db, contact_id, platform_client_id)
    master_id = contact.effective_master_id

    return (
        db.query(SocialContact)
        .filter(or_(SocialContact.id == master_id, SocialContact.master_contact_id == master_id))
        .order_by(SocialContact.platform, SocialContact.id)
        .all()
    )


def link_contacts(
    db: Session,
    contact_id: int,
    target_contact_id: int,
    platform_client_id: Optional[int] = None,
) -> SocialContact:
    """
    Declare that contact_id is the same person as target_contact_id.

    The contact joins the target's group (under the target's master).
    If the contact was itself a master, its linked contacts move to the
    new master in the same transaction.

    The contact, the target and the target's master are locked together;
    if the target's group moved while waiting for the locks, the new
    master is resolved and locked instead.

    Returns:
        SocialContact: The linked contact
    """
    if contact_id == target_contact_id:
        raise InvalidOperationError("A contact cannot be linked to itself")

    master_id = _get_contact(db, target_contact_id, platform_client_id).effective_master_id

    for _ in range(MAX_LOCK_ATTEMPTS):
        locked = _lock_contacts(db, (contact_id, target_contact_id, master_id))
        contact = _require(locked.get(contact_id), contact_id, platform_client_id)
        target = _require(locked.get(target_contact_id), target_contact_id, platform_client_id)
        master = locked.get(master_id)

        resolved_id = target.effective_master_id
        if resolved_id == master_id and master is not None and master.master_contact_id is None:
            break
        if resolved_id == master_id and master is not None:
            resolved_id = master.master_contact_id
        logger.info("Group of contact %s moved from %s to %s while locking", target_contact_id, master_id, resolved_id)
        master_id = resolved_id
    else:
        raise InvalidOperationError(f"Group of contact {target_contact_id} keeps changing; retry the link")

    if contact.platform_client_id != target.platform_client_id:
        raise NotFoundError("Contact", target_contact_id)

    if master_id == contact.id:
        raise InvalidOperationError(
            f"Contact {target_contact_id} is already linked to {contact_id}; use set-master to swap them"
        )

    changed = _attach(db, contact, master_id)
    _commit(db, changed)

    logger.info("Linked contact %s under master %s (%d rows moved)", contact_id, master_id, len(changed))
    return contact


def unlink_contact(
    db: Session,
    contact_id: int,
    platform_client_id: Optional[int] = None,
) -> SocialContact:
    """Detach a contact from its group; it becomes a standalone master."""
    contact = _require(_lock_contacts(db, (contact_id,)).get(contact_id), contact_id, platform_client_id)
    if contact.master_contact_id is None:
        return contact

    former_master_id = contact.master_contact_id
    contact.master_contact_id = None
    _commit(db, [contact])

    logger.info("Unlinked contact %s from master %s", contact_id, former_master_id)
    return contact


def set_as_master(
    db: Session,
    contact_id: int,
    platform_client_id: Optional[int] = None,
) -> List[SocialContact]:
    """
    Promote a linked contact to master of its group: it is detached and
    every other member of the group is re-linked under it. All or
    nothing: a failure leaves the group untouched.

    Returns:
        list: The group after the change
    """
    contact = _get_contact(db, contact_id, platform_client_id)
    if contact.master_contact_id is None:
        return get_linked_contacts(db, contact_id)

    old_master_id = contact.master_contact_id
    locked = _lock_contacts(db, (contact_id, old_master_id))
    contact = _require(locked.get(contact_id), contact_id, platform_client_id)
    old_master = locked.get(old_master_id)
    if contact.master_contact_id != old_master_id or old_master is None:
        raise InvalidOperationError(f"Group of contact {contact_id} changed meanwhile; reload and retry")

    contact.master_contact_id = None
    db.flush()

    # The old master's remaining children come along with it
    changed = [contact] + _attach(db, old_master, contact.id)
    _commit(db, changed)

    logger.info("Contact %s is now master (was linked to %s)", contact_id, old_master.id)
    return get_linked_contacts(db, contact_id)


def search_contacts_for_linking(
    db: Session,
    platform_client_id: int,
    query: str,
    exclude_contact_id: Optional[int] = None,
    limit: Optional[int] = None,
) -> List[SocialContact]:
    """
    Find link candidates by display name or name (case-insensitive substring).

    Args:
        platform_client_id: Tenant to search in
        query: Text typed by the operator
        exclude_contact_id: Contact being linked, never returned
        limit: Maximum rows, capped at CONTACT_SEARCH_LIMIT

    Returns:
        list: At most CONTACT_SEARCH_LIMIT contacts
    """
    cap = settings.CONTACT_SEARCH_LIMIT
    limit = cap if limit is None else max(0, min(limit, cap))

    pattern = f"%{escape_like(query)}%"
    q = db.query(SocialContact).filter(
        SocialContact.platform_client_id == platform_client_id,
        or_(
            SocialContact.display_name.ilike(pattern, escape=LIKE_ESCAPE),
            SocialContact.name.ilike(pattern, escape=LIKE_ESCAPE),
        ),
    )
    if exclude_contact_id is not None:
        q = q.filter(SocialContact.id != exclude_contact_id)

    return q.order_by(SocialContact.display_name, SocialContact.id).limit(limit).all()
