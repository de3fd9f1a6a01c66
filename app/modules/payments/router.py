"""Payment webhook router."""

from __future__ import annotations

from fastapi import APIRouter, Depends, Header, Request

from app.modules.payments.schemas import WebhookAck
from app.modules.payments.service import PaymentService, get_payment_service

router = APIRouter(prefix="/payments", tags=["payments"])


@router.post("/webhook", response_model=WebhookAck)
async def payment_webhook(
    request: Request,
    stripe_signature: str | None = Header(default=None, alias="Stripe-Signature"),
    service: PaymentService = Depends(get_payment_service),
) -> WebhookAck:
    """Receive Stripe events; the raw body is needed for signature checks."""
    raw_body = await request.body()
    await service.handle_notification(raw_body, stripe_signature)
    return WebhookAck()
