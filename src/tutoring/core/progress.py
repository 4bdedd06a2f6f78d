"""Student progress statistics for the dashboard.

Pure aggregation over a user's stored chat sessions and exam results; no
database or LLM access. Day boundaries are UTC.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from typing import Any, Literal

from tutoring.db.chat_sessions_repository import ChatSessionRecord
from tutoring.db.exam_results_repository import ExamResultRecord
from tutoring.db.models import as_utc
from tutoring.utils.text_utils import round_half_up

Trend = Literal["up", "down", "stable"]

WEEK_DAYS = 7
RECENT_SESSIONS_LIMIT = 5
TREND_MIN_SESSIONS = 4
TREND_WINDOW = timedelta(days=14)


@dataclass
class DashboardStats:
    """Aggregated progress for one student."""

    learning_sessions: int = 0
    topics_explored: int = 0
    recent_sessions: list[dict[str, Any]] = field(default_factory=list)
    practice_exams: int = 0
    average_score: int = 0
    weekly_chat_activity: list[int] = field(default_factory=lambda: [0] * WEEK_DAYS)
    weekly_exam_activity: list[int] = field(default_factory=lambda: [0] * WEEK_DAYS)
    subject_distribution: list[dict[str, Any]] = field(default_factory=list)
    current_streak: int = 0
    last_activity_date: str | None = None
    improvement_trend: Trend = "stable"
    exams_this_week: int = 0
    sessions_this_week: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "learningSessions": self.learning_sessions,
            "topicsExplored": self.topics_explored,
            "recentSessions": self.recent_sessions,
            "practiceExams": self.practice_exams,
            "averageScore": self.average_score,
            "weeklyActivity": list(self.weekly_chat_activity),
            "weeklyChatActivity": list(self.weekly_chat_activity),
            "weeklyExamActivity": list(self.weekly_exam_activity),
            "subjectDistribution": self.subject_distribution,
            "currentStreak": self.current_streak,
            "lastSessionDate": self.last_activity_date,
            "improvementTrend": self.improvement_trend,
            "examsThisWeek": self.exams_this_week,
            "sessionsThisWeek": self.sessions_this_week,
            "streakMessage": streak_message(self.current_streak),
        }


def _session_time(session: ChatSessionRecord) -> datetime | None:
    stamp = session.updated_at or session.created_at
    return as_utc(stamp) if stamp else None


def weekly_buckets(timestamps: list[datetime], now: datetime) -> list[int]:
    """Counts for the last 7 days, oldest first; index 6 is the last 24 hours."""
    buckets = [0] * WEEK_DAYS
    for ts in timestamps:
        days = (now - ts) // timedelta(days=1)
        if 0 <= days < WEEK_DAYS:
            buckets[WEEK_DAYS - 1 - days] += 1
    return buckets


def current_streak(activity_days: set[date], today: date) -> int:
    """Consecutive active days ending today; 0 when today has no activity."""
    streak = 0
    day = today
    while day in activity_days:
        streak += 1
        day -= timedelta(days=1)
    return streak


def improvement_trend(session_times: list[datetime], now: datetime) -> Trend:
    """Compare sessions in the last two weeks with the two weeks before."""
    if len(session_times) < TREND_MIN_SESSIONS:
        return "stable"
    recent_start = now - TREND_WINDOW
    previous_start = now - 2 * TREND_WINDOW
    recent = sum(1 for t in session_times if t >= recent_start)
    previous = sum(1 for t in session_times if previous_start <= t < recent_start)
    if recent > previous:
        return "up"
    if recent < previous:
        return "down"
    return "stable"


def start_of_week(now: datetime) -> datetime:
    """Midnight of the most recent Sunday."""
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    days_since_sunday = (midnight.weekday() + 1) % 7
    return midnight - timedelta(days=days_since_sunday)


def streak_message(streak: int) -> str:
    if streak == 0:
        return "Start your learning streak today!"
    if streak == 1:
        return "Great start! Keep it going!"
    if streak < 7:
        return f"{streak} day streak! You're building momentum!"
    if streak < 30:
        return f"{streak} day streak! You're on fire!"
    return f"{streak} day streak! You're unstoppable!"


def compute_dashboard(
    sessions: list[ChatSessionRecord],
    results: list[ExamResultRecord],
    now: datetime | None = None,
) -> DashboardStats:
    """Build dashboard statistics from a user's sessions and exam results."""
    now = as_utc(now) if now else datetime.now(timezone.utc)

    session_times = [t for t in (_session_time(s) for s in sessions) if t is not None]
    exam_times = [as_utc(r.created_at) for r in results if r.created_at]

    ordered = sorted(
        sessions,
        key=lambda s: _session_time(s) or datetime.min.replace(tzinfo=timezone.utc),
        reverse=True,
    )

    average = 0
    if results:
        average = round_half_up(sum(r.percentage for r in results) / len(results))

    subject_counts = Counter(s.subject for s in sessions if s.subject)

    activity_days = {t.date() for t in session_times + exam_times}
    week_start = start_of_week(now)

    return DashboardStats(
        learning_sessions=len(sessions),
        topics_explored=len({f"{s.subject}-{s.topic}" for s in sessions}),
        recent_sessions=[s.to_dict() for s in ordered[:RECENT_SESSIONS_LIMIT]],
        practice_exams=len(results),
        average_score=average,
        weekly_chat_activity=weekly_buckets(session_times, now),
        weekly_exam_activity=weekly_buckets(exam_times, now),
        subject_distribution=[
            {"subject": subject, "count": count} for subject, count in subject_counts.items()
        ],
        current_streak=current_streak(activity_days, now.date()),
        last_activity_date=max(activity_days).isoformat() if activity_days else None,
        improvement_trend=improvement_trend(session_times, now),
        exams_this_week=sum(1 for t in exam_times if t >= week_start),
        sessions_this_week=sum(1 for t in session_times if t >= week_start),
    )
