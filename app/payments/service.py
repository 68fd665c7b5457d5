import logging

from sqlalchemy import select, desc, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.issues.service import get_issue, apply_boost
from app.payments.gateway import CheckoutSession, PaymentGatewayError
from app.payments.models import Payment
from app.shared.config import Settings
from app.shared.errors import Forbidden, InvalidOperation, NotFound, PaymentProviderError
from app.users.models import User
from app.users.service import set_premium

logger = logging.getLogger(__name__)

BOOST = "boost_issue"
SUBSCRIPTION = "subscription"
PAYMENT_TYPES = (BOOST, SUBSCRIPTION)

def _urls(settings: Settings) -> tuple[str, str]:
    base = settings.SITE_URL.rstrip("/")
    return f"{base}/payment-success?session_id={{CHECKOUT_SESSION_ID}}", f"{base}/payment-cancelled"

def create_boost_checkout(db: Session, gateway, settings: Settings, user: User, issue_id: str) -> CheckoutSession:
    issue = get_issue(db, issue_id)
    if issue.reporter_email != user.email:
        raise Forbidden("Only the reporter can boost this issue")
    if issue.is_boosted:
        raise InvalidOperation("Issue is already boosted")
    success_url, cancel_url = _urls(settings)
    try:
        return gateway.create_checkout_session(
            name=f"Boost issue: {issue.title}",
            amount=settings.BOOST_PRICE_CENTS,
            currency=settings.CURRENCY,
            customer_email=user.email,
            metadata={"payment_type": BOOST, "customer_email": user.email,
                      "customer_name": user.name, "issue_id": issue.id, "issue_title": issue.title},
            success_url=success_url,
            cancel_url=cancel_url,
        )
    except PaymentGatewayError as e:
        raise PaymentProviderError("Could not start checkout", details=str(e))

def create_subscription_checkout(gateway, settings: Settings, user: User) -> CheckoutSession:
    if user.is_premium:
        raise InvalidOperation("You are already a premium member")
    success_url, cancel_url = _urls(settings)
    try:
        return gateway.create_checkout_session(
            name="Premium subscription",
            amount=settings.SUBSCRIPTION_PRICE_CENTS,
            currency=settings.CURRENCY,
            customer_email=user.email,
            metadata={"payment_type": SUBSCRIPTION, "customer_email": user.email,
                      "customer_name": user.name},
            success_url=success_url,
            cancel_url=cancel_url,
        )
    except PaymentGatewayError as e:
        raise PaymentProviderError("Could not start checkout", details=str(e))

def _by_transaction(db: Session, transaction_id: str) -> Payment | None:
    return db.scalars(select(Payment).where(Payment.transaction_id == transaction_id)).first()

def record_payment_once(db: Session, session: CheckoutSession) -> tuple[Payment, bool]:
    """
    Insert the payment row for this session's transaction unless one exists.

    The unique constraint on transaction_id decides: a conflicting insert
    means another call already settled it. Returns (payment, created) with
    the row flushed but not committed when created.
    """
    meta = session.metadata or {}
    p = Payment(
        amount=session.amount_total,
        currency=session.currency,
        customer_email=(meta.get("customer_email") or session.customer_email or "").lower(),
        customer_name=meta.get("customer_name") or "",
        transaction_id=session.payment_intent,
        payment_type=meta["payment_type"],
        payment_status=session.payment_status,
        issue_id=meta.get("issue_id") or None,
        issue_title=meta.get("issue_title") or None,
    )
    db.add(p)
    try:
        db.flush()
    except IntegrityError:
        db.rollback()
        return _by_transaction(db, session.payment_intent), False
    return p, True

def _apply_effect(db: Session, payment: Payment) -> None:
    if payment.payment_type == BOOST and payment.issue_id:
        if not apply_boost(db, payment.issue_id, payment.customer_name, payment.customer_email):
            logger.warning("boost paid for missing issue %s", payment.issue_id)
    elif payment.payment_type == SUBSCRIPTION:
        if not set_premium(db, payment.customer_email):
            logger.warning("subscription paid by unknown user %s", payment.customer_email)

def settle_session(db: Session, gateway, session_id: str) -> dict:
    """
    Reconcile a Stripe checkout session into exactly one local payment.

    Business effects (boost / premium) only run on the call that inserted
    the row; replays return the stored payment untouched.
    """
    try:
        session = gateway.retrieve_session(session_id)
    except PaymentGatewayError as e:
        return {"success": False, "message": f"Could not verify payment: {e}"}

    if not session.payment_intent:
        return {"success": False, "message": "No completed payment for this session"}
    if session.payment_status != "paid":
        return {"success": False, "message": f"Payment status is {session.payment_status}"}
    meta = session.metadata or {}
    # sessions opened by other products on the same Stripe account carry no payment_type
    if meta.get("payment_type") not in PAYMENT_TYPES:
        logger.warning("ignoring checkout session %s without a known payment_type", session.id)
        return {"success": False, "message": "Checkout session was not created by this service"}
    if meta["payment_type"] == BOOST and not meta.get("issue_id"):
        return {"success": False, "message": "Boost payment is missing its issue"}

    payment, created = record_payment_once(db, session)
    if created:
        _apply_effect(db, payment)
        db.commit()
        db.refresh(payment)
        logger.info("settled %s payment %s for %s", payment.payment_type,
                    payment.transaction_id, payment.customer_email)
    return {"success": True, "created": created, "payment": payment}

def list_payments(db: Session, customer_email: str | None = None, payment_type: str | None = None) -> list[Payment]:
    stmt = select(Payment)
    if customer_email:
        stmt = stmt.where(Payment.customer_email == customer_email)
    if payment_type:
        stmt = stmt.where(Payment.payment_type == payment_type)
    return list(db.scalars(stmt.order_by(desc(Payment.paid_at))).all())

def get_payment_for(db: Session, user: User, payment_id: str) -> Payment:
    p = db.get(Payment, payment_id)
    if not p:
        raise NotFound("Payment not found")
    if p.customer_email != user.email and user.effective_role != "admin":
        raise Forbidden("Forbidden Access")
    return p

def payment_totals(db: Session) -> dict[str, int]:
    rows = db.execute(
        select(Payment.payment_type, func.count(Payment.id), func.coalesce(func.sum(Payment.amount), 0))
        .group_by(Payment.payment_type)
    ).all()
    out = {"count": 0, "amount": 0, BOOST: 0, SUBSCRIPTION: 0}
    for ptype, n, amount in rows:
        out[ptype] = amount
        out["count"] += n
        out["amount"] += amount
    return out
