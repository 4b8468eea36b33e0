# app/notification_service.py

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

import requests
from sqlalchemy.orm import Session

from app.config import settings
from models.seller_notifications import NotificationEvent, SellerNotification

logger = logging.getLogger(__name__)


def format_cents(amount: int) -> str:
    return f"{amount / 100:.2f}"


def emit(
    db: Session,
    *,
    seller_id: int,
    event: NotificationEvent,
    title: str,
    message: Optional[str] = None,
    data: Optional[dict[str, Any]] = None,
) -> SellerNotification:
    """
    Records a notification inside the caller's transaction.
    Nothing leaves the process until deliver() is called after commit.
    """
    notification = SellerNotification(
        seller_id=seller_id,
        event=event,
        title=title,
        message=message,
        data=data or {},
    )
    db.add(notification)
    return notification


def deliver(notifications: Iterable[SellerNotification]) -> int:
    """
    Forwards committed notifications to the external dispatcher, if one is
    configured. Best effort: failures are logged and never raised.
    """
    url = settings.notifications_webhook_url
    if not url:
        return 0

    sent = 0
    for n in notifications:
        payload = {
            "id": n.id,
            "seller_id": n.seller_id,
            "event": n.event.value if n.event else None,
            "title": n.title,
            "message": n.message,
            "data": n.data or {},
        }
        try:
            r = requests.post(url, json=payload, timeout=10)
            if r.status_code >= 400:
                logger.warning(
                    "NOTIFY: dispatcher rejected event | id=%s | event=%s | status=%s",
                    n.id,
                    payload["event"],
                    r.status_code,
                )
                continue
            sent += 1
        except requests.RequestException:
            logger.exception("NOTIFY: dispatch FAILED | id=%s | event=%s", n.id, payload["event"])
    return sent
