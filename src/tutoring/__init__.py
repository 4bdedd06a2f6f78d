"""AI tutoring service: Socratic tutor chat, practice exams and progress tracking."""

__version__ = "0.1.0"
