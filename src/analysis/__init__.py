"""Analysis package exports."""

from .garbage_time_analyzer import (
    DataQualityReport,
    GarbageTimeAnalyzer,
    GarbageTimeResult,
    GarbageTimeSummary,
)

__all__ = [
    "DataQualityReport",
    "GarbageTimeAnalyzer",
    "GarbageTimeResult",
    "GarbageTimeSummary",
]
