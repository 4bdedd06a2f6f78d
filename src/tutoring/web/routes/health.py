"""Health check endpoint."""

from datetime import datetime, timezone

from fastapi import APIRouter, Depends, Query

from tutoring import __version__
from tutoring.db.database import ping
from tutoring.llm.client import LLMClient
from tutoring.web.dependencies import get_chat_client
from tutoring.web.schemas import HealthResponse

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
def health_check(
    llm: bool = Query(default=False, description="Also check the LLM provider"),
    client: LLMClient = Depends(get_chat_client),
) -> HealthResponse:
    """Check API health status and database reachability.

    The provider round trip is opt-in since it costs a network call.
    """
    return HealthResponse(
        status="ok",
        version=__version__,
        timestamp=datetime.now(timezone.utc).isoformat(),
        database=ping(),
        llm=client.is_available() if llm else None,
    )
