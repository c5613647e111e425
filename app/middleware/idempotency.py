import hashlib
import json
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.responses import JSONResponse

from app.core.logging import get_logger
from app.db import database, models

logger = get_logger(__name__)

IDEMPOTENT_PATHS = ("/orders/checkout",)


def idempotency_key_hash(path: str, authorization: str, key: str) -> str:
    # scoped per caller and endpoint so two users can reuse the same key
    return hashlib.sha256(f"{path}\n{authorization}\n{key}".encode()).hexdigest()


class IdempotencyMiddleware(BaseHTTPMiddleware):
    """Replays the stored response for repeated POSTs carrying the same Idempotency-Key.

    Only successful (2xx) JSON responses are stored, so a checkout that failed
    on stock or validation can be retried with the same key.
    """

    @asynccontextmanager
    async def _session(self, request):
        # prefer the app's dependency override (used by tests)
        get_db = request.app.dependency_overrides.get(database.get_db, database.get_db)
        gen = get_db()
        db = await gen.__anext__()
        try:
            yield db
        finally:
            await gen.aclose()

    async def dispatch(self, request, call_next: Callable):
        if request.method.upper() != "POST" or request.url.path not in IDEMPOTENT_PATHS:
            return await call_next(request)

        key = request.headers.get("Idempotency-Key")
        if not key:
            return await call_next(request)

        key_hash = idempotency_key_hash(request.url.path, request.headers.get("Authorization", ""), key)

        async with self._session(request) as db:
            result = await db.execute(
                select(models.IdempotencyKey).where(models.IdempotencyKey.key_hash == key_hash)
            )
            existing = result.scalar_one_or_none()
            cached = existing.response_payload if existing else None

        if cached:
            payload = json.loads(cached)
            logger.info("Replaying idempotent response", path=request.url.path)
            return JSONResponse(
                content=payload["body"],
                status_code=payload["status_code"],
                headers={"Idempotent-Replayed": "true"},
            )

        response = await call_next(request)

        chunks = []
        async for chunk in response.body_iterator:
            chunks.append(chunk)
        body_bytes = b"".join(chunks)
        body = json.loads(body_bytes) if body_bytes else None

        if 200 <= response.status_code < 300:
            record = models.IdempotencyKey(
                key_hash=key_hash,
                response_payload=json.dumps({"status_code": response.status_code, "body": body}),
                created_at=datetime.now(timezone.utc),
            )
            async with self._session(request) as db:
                db.add(record)
                try:
                    await db.commit()
                except SQLAlchemyError as e:
                    # a concurrent request with the same key stored first
                    await db.rollback()
                    logger.warning("Idempotency key not stored", error=str(e))

        headers = {
            name: value
            for name, value in response.headers.items()
            if name.lower() not in ("content-length", "content-type")
        }
        return JSONResponse(content=body, status_code=response.status_code, headers=headers)
