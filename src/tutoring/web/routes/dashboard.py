"""Student dashboard endpoint."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends

from tutoring.core.auth import Principal
from tutoring.core.progress import compute_dashboard
from tutoring.db import chat_sessions_repository, exam_results_repository
from tutoring.web.dependencies import require_principal

router = APIRouter(prefix="/api/dashboard", tags=["dashboard"])


@router.get("")
def get_dashboard(principal: Principal = Depends(require_principal)) -> dict[str, Any]:
    """Progress statistics computed from stored sessions and exam results."""
    sessions = chat_sessions_repository.list_sessions(principal.id)
    results = exam_results_repository.list_results(principal.id)
    return compute_dashboard(sessions, results).to_dict()
