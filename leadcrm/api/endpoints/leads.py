from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional
import logging

from leadcrm.api.deps import require_permission
from leadcrm.core.permissions import Permission
from leadcrm.core.responses import api_success
from leadcrm.db.database import get_async_db
from leadcrm.models.lead import LeadStatus
from leadcrm.schemas.auth import CurrentUser
from leadcrm.schemas.lead import InvoiceCheckRequest, LeadCreate, LeadResponse
from leadcrm.services.lead_service import LeadService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("")
async def create_lead(
    payload: LeadCreate,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.CREATE_LEADS)),
):
    lead = await LeadService(db).create_lead(current_user.organization_id, current_user.user_id, payload)
    message = "Sale recorded" if lead.status == LeadStatus.WIN.value else "Lead recorded"
    return api_success(LeadResponse.model_validate(lead), message=message)


@router.post("/check-invoice")
async def check_invoice(
    payload: InvoiceCheckRequest,
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.CREATE_LEADS)),
):
    exists = await LeadService(db).invoice_exists(current_user.organization_id, payload.invoice_no)
    return api_success({"invoice_no": payload.invoice_no.strip(), "exists": exists})


@router.get("/my-leads")
async def my_leads(
    status: Optional[LeadStatus] = Query(None, description="win or lost"),
    db: AsyncSession = Depends(get_async_db),
    current_user: CurrentUser = Depends(require_permission(Permission.VIEW_OWN_LEADS)),
):
    leads = await LeadService(db).list_leads(
        current_user.organization_id,
        sales_rep_id=current_user.user_id,
        status=status.value if status else None,
    )
    return api_success([LeadResponse.model_validate(lead) for lead in leads])
