"""
MockPrep: AI mock interviews with spoken questions and scored answers.

Generates interview questions for a job, reads them aloud, captures spoken
or typed answers, scores each one with structured feedback and asks a
follow-up before moving on.
"""

__version__ = "1.0.0"

# Main entry points
from .interview import RecordingOrchestrator, RecorderState, build_report, export_pdf
from .infrastructure import PersistenceGateway, create_db_engine, init_db

__all__ = [
    "RecordingOrchestrator", "RecorderState", "build_report", "export_pdf",
    "PersistenceGateway", "create_db_engine", "init_db",
]
