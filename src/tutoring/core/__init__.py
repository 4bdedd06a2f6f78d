"""Core business logic.

Modules:
- auth: password hashing, session tokens, credential checks
- exam_models: exam and question data classes
- exam_generator: LLM exam generation with templated fallback
- exam_grader: LLM grading with reconciliation and local fallback
- exam_session: exam attempt state machine and snapshot stores
- tutor: Socratic tutor chat proxy and session metadata
- progress: dashboard statistics
"""

__all__ = [
    "auth",
    "exam_models",
    "exam_generator",
    "exam_grader",
    "exam_session",
    "tutor",
    "progress",
]
