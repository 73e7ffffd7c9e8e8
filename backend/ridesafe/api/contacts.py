"""Emergency contacts API."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from ridesafe.core.deps import get_current_user
from ridesafe.db.session import get_db
from ridesafe.models.user import User
from ridesafe.schemas.contact import ContactCreate, ContactResponse, ContactUpdate
from ridesafe.services.contact_service import create_contact, delete_contact, list_contacts, update_contact

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("", response_model=list[ContactResponse])
def list_my_contacts(
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """All of the caller's emergency contacts, oldest first."""
    return list_contacts(db, current_user.id)


@router.post("", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
def add_contact(
    data: ContactCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Add an emergency contact. Linked to an account when email or phone matches one."""
    return create_contact(db, current_user.id, data.name, data.phone, data.email, data.relationship)


@router.patch("/{contact_id}", response_model=ContactResponse)
def edit_contact(
    contact_id: int,
    data: ContactUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Partial update; send is_active to toggle a contact on or off."""
    return update_contact(db, contact_id, current_user.id, data.model_dump(exclude_unset=True))


@router.delete("/{contact_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_contact(
    contact_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    delete_contact(db, contact_id, current_user.id)
