"""Emergency contact directory and SOS recipient resolution."""

from __future__ import annotations

import logging

from sqlalchemy import func, or_, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, aliased

from ridesafe.core.errors import NotFoundError, StorageError
from ridesafe.models.emergency_contact import EmergencyContact
from ridesafe.models.user import User
from ridesafe.services.channels.base import Recipient
from ridesafe.services.phone_service import has_phone, normalize_phone

logger = logging.getLogger(__name__)


def resolve_contacts(db: Session, user_id: int, include_unreachable: bool = False) -> list[Recipient]:
    """Active emergency contacts of ``user_id`` as dispatch recipients, oldest first.

    By default only contacts with a phone number are returned. With
    ``include_unreachable`` phone-less active contacts are kept too, so the
    dispatcher can record them as skipped. Push tokens are attached for
    contacts linked to an active account. An empty list is not an error.
    """
    linked = aliased(User)
    stmt = (
        select(EmergencyContact, linked.push_token)
        .outerjoin(
            linked,
            (EmergencyContact.linked_account_id == linked.id) & (linked.is_active.is_(True)),
        )
        .where(EmergencyContact.user_id == user_id, EmergencyContact.is_active.is_(True))
        .order_by(EmergencyContact.created_at.asc(), EmergencyContact.id.asc())
    )
    try:
        rows = db.execute(stmt).all()
    except SQLAlchemyError as exc:
        logger.error("Contact lookup failed for user=%s: %s", user_id, exc)
        raise StorageError("Failed to fetch emergency contacts")

    recipients = [
        Recipient(
            contact_id=contact.id,
            name=contact.name,
            phone=contact.phone if has_phone(contact.phone) else None,
            linked_account_id=contact.linked_account_id,
            push_token=push_token,
        )
        for contact, push_token in rows
    ]
    if not include_unreachable:
        recipients = [r for r in recipients if r.phone]
    return recipients


def list_contacts(db: Session, user_id: int) -> list[EmergencyContact]:
    """All contacts of a user (active or not), oldest first."""
    result = db.execute(
        select(EmergencyContact)
        .where(EmergencyContact.user_id == user_id)
        .order_by(EmergencyContact.created_at.asc(), EmergencyContact.id.asc())
    )
    return list(result.scalars().all())


def get_contact(db: Session, contact_id: int, user_id: int) -> EmergencyContact:
    contact = db.get(EmergencyContact, contact_id)
    if not contact or contact.user_id != user_id:
        raise NotFoundError("Contact", message="Contact not found", id=contact_id)
    return contact


def _find_linked_account(db: Session, owner_id: int, phone: str | None, email: str | None) -> int | None:
    """Registered user matching the contact's email or normalized phone, never the owner."""
    conditions = []
    if email:
        conditions.append(func.lower(User.email) == email.strip().lower())
    normalized = normalize_phone(phone.strip()) if has_phone(phone) else None
    if normalized:
        conditions.append(User.phone == normalized)
        if normalized != phone:
            conditions.append(User.phone == phone)
    if not conditions:
        return None
    match = db.execute(
        select(User.id)
        .where(or_(*conditions), User.id != owner_id, User.is_active.is_(True))
        .order_by(User.id.asc())
        .limit(1)
    ).scalar_one_or_none()
    return match


def create_contact(
    db: Session,
    user_id: int,
    name: str,
    phone: str | None = None,
    email: str | None = None,
    relationship: str | None = None,
) -> EmergencyContact:
    """Add an active emergency contact and link it to a matching account."""
    contact = EmergencyContact(
        user_id=user_id,
        name=name.strip(),
        phone=phone.strip() if has_phone(phone) else None,
        email=email.strip() if email else None,
        relationship=relationship.strip() if relationship else None,
        is_active=True,
    )
    contact.linked_account_id = _find_linked_account(db, user_id, contact.phone, contact.email)
    db.add(contact)
    db.commit()
    db.refresh(contact)
    logger.info("Contact %s added for user=%s (linked=%s)", contact.id, user_id, contact.linked_account_id)
    return contact


def update_contact(db: Session, contact_id: int, user_id: int, changes: dict) -> EmergencyContact:
    """Apply a partial update. Phone or email changes re-run account linking."""
    contact = get_contact(db, contact_id, user_id)
    relink = False
    if "name" in changes and changes["name"] is not None:
        contact.name = changes["name"].strip()
    if "phone" in changes:
        contact.phone = changes["phone"].strip() if has_phone(changes["phone"]) else None
        relink = True
    if "email" in changes:
        contact.email = changes["email"].strip() if changes["email"] else None
        relink = True
    if "relationship" in changes:
        contact.relationship = changes["relationship"].strip() if changes["relationship"] else None
    if "is_active" in changes and changes["is_active"] is not None:
        contact.is_active = changes["is_active"]
    if relink:
        contact.linked_account_id = _find_linked_account(db, user_id, contact.phone, contact.email)
    db.commit()
    db.refresh(contact)
    return contact


def delete_contact(db: Session, contact_id: int, user_id: int) -> None:
    contact = get_contact(db, contact_id, user_id)
    db.delete(contact)
    db.commit()
