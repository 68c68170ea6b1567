"""
FastAPI router for contacts.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import paginated_response, success_response
from crm.context import AuthContext
from crm.dependencies import require_permission, get_contact_service
from crm.schemas.contacts import CreateContactRequest, UpdateContactRequest
from crm.services.crm import ContactService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/contacts", tags=["contacts"])


@router.get("")
async def list_contacts(
    ctx: Annotated[AuthContext, Depends(require_permission("contacts", "read"))],
    contact_service: Annotated[ContactService, Depends(get_contact_service)],
    type: Optional[str] = None,
    search: Optional[str] = None,
    includeInactive: bool = False,
    page: int = Query(1, ge=1),
    limit: int = Query(25, ge=1, le=100),
):
    """List contacts, sorted by display name."""
    contacts, total = await contact_service.list_contacts(
        ctx,
        type=type,
        search=search,
        include_inactive=includeInactive,
        page=page,
        limit=limit,
    )
    return paginated_response(contacts, total, page, limit)


@router.post("", status_code=201)
async def create_contact(
    body: CreateContactRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("contacts", "create"))],
    contact_service: Annotated[ContactService, Depends(get_contact_service)],
):
    contact = await contact_service.create_contact(ctx, body.model_dump(exclude_unset=True))
    return success_response(contact, message="Contact created")


@router.get("/{contact_id}")
async def get_contact(
    contact_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("contacts", "read"))],
    contact_service: Annotated[ContactService, Depends(get_contact_service)],
):
    return success_response(await contact_service.get_contact(ctx, contact_id))


@router.patch("/{contact_id}")
async def update_contact(
    contact_id: str,
    body: UpdateContactRequest,
    ctx: Annotated[AuthContext, Depends(require_permission("contacts", "update"))],
    contact_service: Annotated[ContactService, Depends(get_contact_service)],
):
    contact = await contact_service.update_contact(ctx, contact_id, body.model_dump(exclude_unset=True))
    return success_response(contact, message="Contact updated")


@router.delete("/{contact_id}")
async def delete_contact(
    contact_id: str,
    ctx: Annotated[AuthContext, Depends(require_permission("contacts", "delete"))],
    contact_service: Annotated[ContactService, Depends(get_contact_service)],
):
    """Deactivate a contact; linked leads and jobs keep their reference."""
    await contact_service.deactivate_contact(ctx, contact_id)
    return success_response(message="Contact deactivated")
