"""Route handlers for the Web API."""

from tutoring.web.routes.auth import router as auth_router
from tutoring.web.routes.chat import router as chat_router
from tutoring.web.routes.chat_sessions import router as chat_sessions_router
from tutoring.web.routes.dashboard import router as dashboard_router
from tutoring.web.routes.exam_results import router as exam_results_router
from tutoring.web.routes.exams import router as exams_router
from tutoring.web.routes.health import router as health_router
from tutoring.web.routes.profile import router as profile_router
from tutoring.web.routes.subjects import router as subjects_router

__all__ = [
    "auth_router",
    "chat_router",
    "chat_sessions_router",
    "dashboard_router",
    "exam_results_router",
    "exams_router",
    "health_router",
    "profile_router",
    "subjects_router",
]
