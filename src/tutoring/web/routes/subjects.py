"""Practice exam subject catalog."""

from fastapi import APIRouter

from tutoring.config.subjects import SubjectConfig, list_subjects
from tutoring.web.schemas import SubjectListResponse, SubjectResponse

router = APIRouter(prefix="/api/subjects", tags=["subjects"])


def _to_response(subject: SubjectConfig) -> SubjectResponse:
    return SubjectResponse(
        id=subject.id,
        title=subject.title,
        displayName=subject.display_name,
        level=subject.level,
        topics=subject.topics,
        duration=subject.duration,
        multipleChoiceQuestions=subject.mc_questions,
        shortAnswerQuestions=subject.sa_questions,
        totalQuestions=subject.total_questions,
        totalPoints=subject.total_points,
        description=subject.description,
    )


@router.get("", response_model=SubjectListResponse)
async def get_subjects() -> SubjectListResponse:
    """List the subjects practice exams can be generated for."""
    subjects = [_to_response(s) for s in list_subjects()]
    return SubjectListResponse(subjects=subjects, count=len(subjects))
