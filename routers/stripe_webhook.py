# routers/stripe_webhook.py

from __future__ import annotations

import logging

import stripe
from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

from app.config import settings
from app.db import get_db
from app.payment_service import confirm_payment, mark_payment_failed
from app.retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["Webhooks"])

WEBHOOK_RETRY = RetryPolicy(max_attempts=3, backoff_seconds=0.5)


def _field(obj, key):
    try:
        return obj[key]
    except (KeyError, TypeError):
        return None


@router.post("/stripe")
async def stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Stripe webhook endpoint.
    - verifies the signature with STRIPE_WEBHOOK_SECRET
    - payment_intent.succeeded: order -> paid, then order split (idempotent,
      Stripe may deliver the same event more than once)
    - payment_intent.payment_failed: order -> failed
    Transient DB errors are retried here; if they persist we answer 503 so
    Stripe redelivers the event later.
    """
    secret = settings.stripe_webhook_secret
    if not secret:
        raise HTTPException(
            status_code=500,
            detail="Stripe webhook not configured (missing STRIPE_WEBHOOK_SECRET)",
        )

    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    if not sig_header:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")

    try:
        event = stripe.Webhook.construct_event(
            payload=payload,
            sig_header=sig_header,
            secret=secret,
        )
    except (stripe.SignatureVerificationError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Invalid webhook signature: {str(e)}")

    event_type = _field(event, "type")
    intent = _field(_field(event, "data") or {}, "object") or {}
    intent_id = _field(intent, "id")

    if event_type not in ("payment_intent.succeeded", "payment_intent.payment_failed"):
        return {"ok": True, "ignored": event_type}

    if not intent_id:
        logger.warning("Stripe webhook IGNORED, missing payment intent id | type=%s", event_type)
        return {"ok": True, "ignored": "missing payment intent id"}

    def _handle():
        try:
            if event_type == "payment_intent.succeeded":
                amount_received = _field(intent, "amount_received")
                return confirm_payment(
                    db,
                    intent_id,
                    amount_received=amount_received if isinstance(amount_received, int) else None,
                )
            return mark_payment_failed(db, intent_id)
        except OperationalError:
            db.rollback()
            raise

    try:
        # Sync DB work and retry backoff stay off the event loop
        return await run_in_threadpool(
            run_with_retry, _handle, WEBHOOK_RETRY, label=f"stripe webhook {event_type}"
        )
    except OperationalError:
        raise HTTPException(status_code=503, detail="Database temporarily unavailable, retry later")
