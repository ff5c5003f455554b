from fastapi import APIRouter, Depends, Response
import redis
from redis.exceptions import RedisError
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from marketplace.core.config import settings
from marketplace.db.session import get_db


router = APIRouter()


def _check_ledger(db: Session) -> str | None:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        return type(e).__name__
    return None


def _check_redis() -> str | None:
    try:
        redis.Redis.from_url(settings.redis_url, socket_connect_timeout=2).ping()
    except RedisError as e:
        return type(e).__name__
    return None


@router.get("/health")
def health() -> dict:
    """Liveness probe - always returns 200 if app is running."""
    return {"status": "ok"}


@router.get("/ready")
def readiness(response: Response, db: Session = Depends(get_db)) -> dict:
    """
    Readiness probe. The ledger database is required for every route;
    Redis backs payout locks and the print partner breaker.
    """
    checks = {"database": _check_ledger(db), "redis": _check_redis()}
    failed = {name: error for name, error in checks.items() if error}
    if failed:
        response.status_code = 503
        return {"status": "not_ready", "failed": failed}
    return {"status": "ready"}
