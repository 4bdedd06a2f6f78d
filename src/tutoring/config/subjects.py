"""Exam subject catalog loader.

Loads per-subject practice exam settings from data/config/subjects_v1.yaml,
falling back to the built-in BJC/BGCSE catalog when the file is missing.

Usage:
    from tutoring.config.subjects import get_subject

    subject = get_subject("bjc-math")
    subject.total_points  # 80
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path
from typing import Any

import structlog
import yaml

logger = structlog.get_logger(__name__)

# Config file path (relative to project root)
SUBJECTS_FILE = Path("data/config/subjects_v1.yaml")

DEFAULT_SUBJECT_ID = "default"


@dataclass
class SubjectConfig:
    """Practice exam settings for one subject."""

    id: str
    title: str
    level: str
    topics: str
    duration: int  # minutes
    mc_questions: int = 10
    sa_questions: int = 5
    mc_points: float = 4
    sa_points: float = 8
    exam_style: str = ""
    description: str = ""

    @property
    def total_questions(self) -> int:
        return self.mc_questions + self.sa_questions

    @property
    def total_points(self) -> float:
        total = self.mc_questions * self.mc_points + self.sa_questions * self.sa_points
        return int(total) if float(total).is_integer() else total

    @property
    def display_name(self) -> str:
        """Title without the 'Practice Exam' suffix."""
        return self.title.replace(" Practice Exam", "")

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for API responses."""
        data = asdict(self)
        data["total_questions"] = self.total_questions
        data["total_points"] = self.total_points
        return data


# Module-level cache
_cached_subjects: dict[str, SubjectConfig] | None = None

_BJC = {"level": "Middle School (BJC)", "duration": 30, "mc_questions": 10, "sa_questions": 5, "mc_points": 4, "sa_points": 8}
_BGCSE = {"level": "High School (BGCSE)", "duration": 45, "mc_questions": 15, "sa_questions": 10, "mc_points": 3, "sa_points": 5.5}


def _get_default_subjects() -> dict[str, SubjectConfig]:
    """Get the built-in catalog used when the config file is missing."""
    entries = [
        SubjectConfig(
            id="bjc-math",
            title="BJC Mathematics Practice Exam",
            topics="basic algebra, geometry, fractions, decimals, percentages, simple equations, basic statistics, number operations, measurement",
            exam_style="BJC Mathematics past papers format with emphasis on fundamental mathematical concepts, problem-solving, and practical applications.",
            description="Middle School level mathematics covering basic algebra, geometry, and arithmetic",
            **_BJC,
        ),
        SubjectConfig(
            id="bjc-general-science",
            title="BJC General Science Practice Exam",
            topics="basic biology, chemistry, physics, earth science, scientific method, simple experiments, natural phenomena, environmental science",
            exam_style="BJC General Science past papers format with emphasis on scientific understanding, practical applications, and scientific inquiry.",
            description="Middle School level general science covering biology, chemistry, physics, and earth science",
            **_BJC,
        ),
        SubjectConfig(
            id="bjc-health-science",
            title="BJC Health Science Practice Exam",
            topics="human anatomy, health and nutrition, disease prevention, medical basics, personal hygiene, first aid, mental health, community health",
            exam_style="BJC Health Science past papers format with emphasis on health education, medical knowledge, and practical health applications.",
            description="Middle School level health science covering anatomy, nutrition, and health education",
            **_BJC,
        ),
        SubjectConfig(
            id="bgcse-math",
            title="BGCSE Mathematics Practice Exam",
            topics="advanced algebra, trigonometry, calculus basics, statistics, geometry proofs, complex equations, coordinate geometry, functions",
            exam_style="BGCSE Mathematics past papers format with emphasis on problem-solving, mathematical reasoning, and practical applications.",
            description="High School level mathematics including calculus, trigonometry, and advanced algebra",
            **_BGCSE,
        ),
        SubjectConfig(
            id="bgcse-chemistry",
            title="BGCSE Chemistry Practice Exam",
            topics="organic chemistry, chemical bonding, thermodynamics, electrochemistry, chemical kinetics, equilibrium, acids and bases, redox reactions, periodic table trends, molecular structure",
            exam_style="BGCSE Chemistry past papers format with emphasis on practical applications, chemical calculations, and theoretical understanding.",
            description="High School level chemistry covering organic chemistry, chemical bonding, and thermodynamics",
            **_BGCSE,
        ),
        SubjectConfig(
            id="bgcse-physics",
            title="BGCSE Physics Practice Exam",
            topics="mechanics, electricity and magnetism, waves and optics, thermodynamics, modern physics, nuclear physics, particle physics, electromagnetic radiation",
            exam_style="BGCSE Physics past papers format with emphasis on mathematical problem-solving, physics principles, and practical applications.",
            description="High School level physics covering mechanics, electricity, magnetism, and modern physics",
            **_BGCSE,
        ),
        SubjectConfig(
            id="bgcse-biology",
            title="BGCSE Biology Practice Exam",
            topics="cell biology, genetics, evolution, ecology, human physiology, plant biology, molecular biology, biotechnology, classification, reproduction",
            exam_style="BGCSE Biology past papers format with emphasis on biological processes, scientific analysis, and practical biology applications.",
            description="High School level biology covering cell biology, genetics, ecology, and human physiology",
            **_BGCSE,
        ),
        SubjectConfig(
            id="bgcse-combined-science",
            title="BGCSE Combined Science Practice Exam",
            topics="integrated biology, chemistry, and physics concepts, scientific method, practical applications, interdisciplinary connections",
            exam_style="BGCSE Combined Science past papers format covering all three sciences with emphasis on connections between disciplines.",
            description="Integrated science covering biology, chemistry, and physics concepts",
            **_BGCSE,
        ),
    ]
    return {s.id: s for s in entries}


def _default_subject() -> SubjectConfig:
    """Generic exam used for unknown subjects."""
    return SubjectConfig(
        id=DEFAULT_SUBJECT_ID,
        title="Practice Exam",
        level="General",
        topics="various academic topics",
        duration=30,
        description="Practice examination",
    )


def _parse_subject(sid: str, sdata: dict[str, Any]) -> SubjectConfig:
    return SubjectConfig(
        id=sdata.get("id", sid),
        title=sdata.get("title", sid),
        level=sdata.get("level", "General"),
        topics=sdata.get("topics", ""),
        duration=int(sdata.get("duration", 30)),
        mc_questions=int(sdata.get("mc_questions", 10)),
        sa_questions=int(sdata.get("sa_questions", 5)),
        mc_points=sdata.get("mc_points", 4),
        sa_points=sdata.get("sa_points", 8),
        exam_style=sdata.get("exam_style", ""),
        description=sdata.get("description", ""),
    )


def load_subjects(force_reload: bool = False) -> dict[str, SubjectConfig]:
    """Load all subjects from config file.

    Args:
        force_reload: If True, ignore cache and reload from file.

    Returns:
        Dictionary mapping subject ID to SubjectConfig.
    """
    global _cached_subjects

    if _cached_subjects is not None and not force_reload:
        return _cached_subjects

    if not SUBJECTS_FILE.exists():
        logger.debug("subjects_file_not_found", path=str(SUBJECTS_FILE))
        _cached_subjects = _get_default_subjects()
        return _cached_subjects

    try:
        data = yaml.safe_load(SUBJECTS_FILE.read_text(encoding="utf-8")) or {}
        subjects_data = data.get("subjects", {})

        _cached_subjects = {
            sid: _parse_subject(sid, sdata or {}) for sid, sdata in subjects_data.items()
        }

        logger.debug("loaded_subjects", count=len(_cached_subjects))
        return _cached_subjects

    except (OSError, yaml.YAMLError, AttributeError, TypeError, ValueError) as e:
        logger.error("failed_to_load_subjects", error=str(e))
        _cached_subjects = _get_default_subjects()
        return _cached_subjects


def get_subject(subject_id: str) -> SubjectConfig:
    """Get exam settings for a subject.

    Unknown subjects get the generic practice exam settings; lookups are
    case-insensitive.
    """
    subjects = load_subjects()
    return subjects.get(subject_id.lower()) or _default_subject()


def list_subjects() -> list[SubjectConfig]:
    """List all configured subjects."""
    return list(load_subjects().values())


def clear_subjects_cache() -> None:
    """Clear the subjects cache."""
    global _cached_subjects
    _cached_subjects = None
