"""
Data Models
"""
from .schemas import (
    NONE_EXIST_ERROR,
    DEFAULT_INTRODUCTION,
    SourceType,
    ErrorKind,
    ReportStyle,
    Rating,
    CanonicalRecord,
    StageResult,
    SearchHit,
)

__all__ = [
    "NONE_EXIST_ERROR",
    "DEFAULT_INTRODUCTION",
    "SourceType",
    "ErrorKind",
    "ReportStyle",
    "Rating",
    "CanonicalRecord",
    "StageResult",
    "SearchHit",
]
