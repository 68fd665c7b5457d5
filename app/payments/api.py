import logging

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import Response
from sqlalchemy.orm import Session

from app.payments.gateway import PaymentGatewayError, get_gateway
from app.payments.invoice import render_invoice, invoice_number
from app.payments.schemas import (
    BoostCheckoutIn, ConfirmIn, CheckoutOut, SettlementOut, PaymentList, PaymentType,
)
from app.payments.service import (
    create_boost_checkout, create_subscription_checkout, settle_session,
    list_payments, get_payment_for,
)
from app.shared.auth import CallerContext, require_capability
from app.shared.config import Settings, get_settings
from app.shared.db import get_db
from app.shared.errors import InvalidOperation

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])

@router.post("/checkout/boost", response_model=CheckoutOut)
def api_boost_checkout(
    inb: BoostCheckoutIn,
    ctx: CallerContext = Depends(require_capability("citizen")),
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    s = create_boost_checkout(db, gateway, settings, ctx.user, inb.issue_id)
    return {"session_id": s.id, "url": s.url}

@router.post("/checkout/subscription", response_model=CheckoutOut)
def api_subscription_checkout(
    ctx: CallerContext = Depends(require_capability("citizen")),
    gateway=Depends(get_gateway),
    settings: Settings = Depends(get_settings),
):
    s = create_subscription_checkout(gateway, settings, ctx.user)
    return {"session_id": s.id, "url": s.url}

@router.post("/confirm", response_model=SettlementOut)
def api_confirm_payment(
    inb: ConfirmIn,
    ctx: CallerContext = Depends(require_capability("active")),
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
):
    return settle_session(db, gateway, inb.session_id)

@router.post("/webhook")
async def api_stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    gateway=Depends(get_gateway),
):
    payload = await request.body()
    try:
        event = gateway.construct_event(payload, request.headers.get("stripe-signature"))
    except PaymentGatewayError as e:
        raise InvalidOperation(str(e))

    if event["type"] != "checkout.session.completed":
        return {"received": True}

    session_id = event["data"]["object"]["id"]
    result = settle_session(db, gateway, session_id)
    logger.info("webhook settlement for %s: success=%s created=%s",
                session_id, result["success"], result.get("created", False))
    return {"received": True, "success": result["success"]}

@router.get("/mine", response_model=PaymentList)
def api_my_payments(ctx: CallerContext = Depends(require_capability("active")), db: Session = Depends(get_db)):
    return {"items": list_payments(db, customer_email=ctx.email)}

@router.get("", response_model=PaymentList)
def api_all_payments(
    payment_type: PaymentType | None = Query(None),
    ctx: CallerContext = Depends(require_capability("admin")),
    db: Session = Depends(get_db),
):
    return {"items": list_payments(db, payment_type=payment_type)}

@router.get("/{payment_id}/invoice")
def api_invoice(
    payment_id: str,
    ctx: CallerContext = Depends(require_capability("active")),
    db: Session = Depends(get_db),
):
    p = get_payment_for(db, ctx.user, payment_id)
    return Response(
        content=render_invoice(p),
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="{invoice_number(p)}.pdf"'},
    )
