"""Health check endpoints."""

import json
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Response
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tecassist.api.dependencies import Container, get_container
from tecassist.db.engine import Database

router = APIRouter()


async def check_db(db: Database) -> tuple[bool, str]:
    """Check database connectivity.

    Returns:
        (is_ok, status_message)
    """
    try:
        async with db.session() as session:
            await session.execute(text("SELECT 1"))
        return (True, "ok")
    except (SQLAlchemyError, RuntimeError, OSError) as e:
        return (False, f"error: {type(e).__name__}")


@router.get("/health")
async def health() -> dict[str, str]:
    """Liveness: 200 whenever the process is up."""
    return {"status": "ok"}


@router.get("/healthz", response_model=None)
async def healthz(
    container: Annotated[Container, Depends(get_container)],
) -> dict[str, Any] | Response:
    """Readiness: database reachable and at least one provider configured.

    Returns:
        200 with component status if the database is ok
        503 otherwise
    """
    db_ok, db_status = await check_db(container.db)

    response_body = {
        "status": "ok" if db_ok else "degraded",
        "components": {
            "db": db_status,
            "providers": list(container.gateway.order),
        },
    }

    if not db_ok:
        return Response(
            content=json.dumps(response_body),
            status_code=503,
            media_type="application/json",
        )

    return response_body
