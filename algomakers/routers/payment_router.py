from fastapi import APIRouter, Depends, HTTPException, Request, Query
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlmodel import Session
from typing import Optional
import json
import logging

from algomakers.core.config import settings
from algomakers.db.session import get_session
from algomakers.dependencies import get_current_user, get_staff_user, ensure_owner_or_staff
from algomakers.models.user_model import User
from algomakers.schemas.payment_schema import (
    CreateInvoiceRequest,
    InvoiceResponse,
    NowPaymentsWebhook,
    PaymentStatusResponse,
    PaymentListResponse,
    PaymentDetail,
)
from algomakers.crud.payment_crud import PaymentCRUD
from algomakers.crud.webhook_crud import WebhookCRUD
from algomakers.external_services.nowpayments_service import NowPaymentsService
from algomakers.external_services.email_service import EmailClient

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/payments", tags=["payments"])

nowpayments_service = NowPaymentsService()
email_client = EmailClient()

SIGNATURE_HEADER = "x-nowpayments-sig"


@router.post("/create-invoice", response_model=InvoiceResponse)
def create_invoice(
    request: CreateInvoiceRequest,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Create pending subscriptions and a NOWPayments hosted-checkout invoice"""
    try:
        crud = PaymentCRUD(session)
        return crud.create_invoice(current_user, request, nowpayments_service)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Unexpected error creating invoice: {str(e)}")
        raise HTTPException(status_code=500, detail=f"Failed to create invoice: {str(e)}")


@router.post("/webhook")
async def nowpayments_webhook(
    request: Request,
    session: Session = Depends(get_session)
):
    """Handle NOWPayments IPN notifications"""
    raw_body = await request.body()
    signature = request.headers.get(SIGNATURE_HEADER)

    if not nowpayments_service.verify_ipn_signature(raw_body, signature):
        if settings.is_production:
            logger.error("Invalid webhook signature")
            raise HTTPException(status_code=401, detail="Invalid signature")
        logger.warning("Webhook signature missing or invalid, continuing outside production")

    try:
        webhook = NowPaymentsWebhook(**json.loads(raw_body))
    except (ValueError, TypeError, ValidationError) as e:
        logger.error(f"Invalid webhook payload: {str(e)}")
        raise HTTPException(status_code=400, detail="Invalid webhook payload")

    logger.info(f"Received NOWPayments webhook: order={webhook.order_id}, status={webhook.payment_status}")

    try:
        crud = WebhookCRUD(session, email_client=email_client)
        return crud.process(webhook)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing webhook: {str(e)}")
        raise HTTPException(status_code=500, detail="Webhook processing failed")


@router.get("/status/{invoice_id}", response_model=PaymentStatusResponse)
def get_payment_status(
    invoice_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    """Poll NOWPayments for an invoice and reconcile local status"""
    if not nowpayments_service.is_configured:
        logger.error("NOWPAYMENTS_API_KEY is not set")
        raise HTTPException(status_code=500, detail="NOWPayments API key not configured")

    crud = PaymentCRUD(session)
    payment = crud.get_payment_by_invoice_id(invoice_id)
    if not payment:
        return JSONResponse(
            status_code=404,
            content={"status": "not_found", "invoice_id": invoice_id}
        )
    ensure_owner_or_staff(payment.user_id, current_user)

    try:
        return crud.reconcile_status(payment, nowpayments_service)
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error getting payment status for {invoice_id}: {str(e)}")
        raise HTTPException(status_code=500, detail="Failed to get payment status")


@router.get("", response_model=PaymentListResponse)
def list_payments(
    current_user: User = Depends(get_staff_user),
    session: Session = Depends(get_session),
    status: Optional[str] = Query(None),
    network: Optional[str] = Query(None),
    user_id: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    limit: Optional[int] = Query(None, ge=1, le=500),
    offset: Optional[int] = Query(None, ge=0),
    sort_by: str = Query("created_at"),
    sort_order: str = Query("desc", pattern="^(asc|desc)$"),
):
    """List payments with filters and summary stats (staff only)"""
    crud = PaymentCRUD(session)
    return crud.list_payments(
        status_filter=status,
        network=network,
        user_id=user_id,
        search=q,
        limit=limit,
        offset=offset,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/{payment_id}", response_model=PaymentDetail)
def get_payment(
    payment_id: str,
    current_user: User = Depends(get_current_user),
    session: Session = Depends(get_session)
):
    crud = PaymentCRUD(session)
    payment = crud.get_payment(payment_id)
    ensure_owner_or_staff(payment.user_id, current_user)
    return crud.get_payment_detail(payment)
