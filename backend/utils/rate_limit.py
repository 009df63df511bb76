# utils/rate_limit.py
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from models.session import RateLimitHit


@dataclass
class RateLimitDecision:
    allowed: bool
    limit: int
    remaining: int
    retry_after_seconds: int


class DatabaseRateLimiter:
    """Sliding-window limit keyed by an arbitrary string, counted in the rate_limit_hits table."""

    def __init__(self, *, prefix: str, limit: int, window_seconds: int) -> None:
        self.prefix = prefix
        self.limit = limit
        self.window_seconds = window_seconds

    def _key(self, key: str) -> str:
        return f"{self.prefix}:{key.strip().lower()}"

    def check(self, db: Session, key: str, now: Optional[datetime] = None, record: bool = True) -> RateLimitDecision:
        now = now or datetime.utcnow()
        full_key = self._key(key)
        cutoff = now - timedelta(seconds=self.window_seconds)

        db.query(RateLimitHit).filter(
            RateLimitHit.key == full_key,
            RateLimitHit.created_at <= cutoff,
        ).delete(synchronize_session=False)

        hits = (
            db.query(RateLimitHit)
            .filter(RateLimitHit.key == full_key, RateLimitHit.created_at > cutoff)
            .order_by(RateLimitHit.created_at.asc())
            .all()
        )

        if len(hits) >= self.limit:
            oldest = hits[0].created_at
            retry_after = max(1, int(self.window_seconds - (now - oldest).total_seconds()))
            db.commit()
            return RateLimitDecision(allowed=False, limit=self.limit, remaining=0, retry_after_seconds=retry_after)

        if record:
            db.add(RateLimitHit(key=full_key, created_at=now))
        db.commit()
        used = len(hits) + (1 if record else 0)
        return RateLimitDecision(
            allowed=True,
            limit=self.limit,
            remaining=max(0, self.limit - used),
            retry_after_seconds=0,
        )
