# app/earnings_job.py

"""
Daily earnings sweep: pending -> available once the holding period is over.

Run once per day (cron "0 0 * * *" or the platform scheduler):

    python -m app.earnings_job
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Optional

from app.db import SessionLocal
from app.earnings_service import promote_pending_to_available
from app.retry import RetryPolicy, run_with_retry

logger = logging.getLogger(__name__)


def run(now: Optional[datetime] = None, session_factory=SessionLocal) -> dict[str, Any]:
    def _sweep() -> dict[str, Any]:
        db = session_factory()
        try:
            promoted = promote_pending_to_available(db, now=now)
            return {
                "count": len(promoted),
                "total_amount": sum(int(e.net_amount) for e in promoted),
                "seller_ids": sorted({int(e.seller_id) for e in promoted}),
            }
        finally:
            db.close()

    return run_with_retry(_sweep, RetryPolicy(max_attempts=3, backoff_seconds=5.0), label="earnings sweep")


def main() -> None:
    from app.config import settings

    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )
    result = run()
    logger.info("Earnings sweep finished | promoted=%s | total=%s", result["count"], result["total_amount"])


if __name__ == "__main__":
    main()
