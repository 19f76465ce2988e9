"""
Translation Progress Data Classes

Contains the ProgressEvent delivered to the run's progress callback and the
RunSummary returned when a run ends.
"""

from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional


@dataclass
class ProgressEvent:
    """One progress message, optionally carrying counter updates."""
    message: str
    total_files: Optional[int] = None       # Files x languages for the whole run
    completed_files: Optional[int] = None
    current_file: Optional[str] = None
    strings_translated: Optional[int] = None
    file_completed: bool = False
    error: bool = False
    language: Optional[str] = None

    @property
    def has_delta(self) -> bool:
        return bool(self.to_dict())

    def to_dict(self) -> Dict[str, Any]:
        """camelCase payload of the fields that are set (the log message excluded)."""
        payload: Dict[str, Any] = {}
        if self.total_files is not None:
            payload["totalFiles"] = self.total_files
        if self.completed_files is not None:
            payload["completedFiles"] = self.completed_files
        if self.current_file is not None:
            payload["currentFile"] = self.current_file
        if self.strings_translated is not None:
            payload["stringsTranslated"] = self.strings_translated
        if self.file_completed:
            payload["fileCompleted"] = True
        if self.error:
            payload["error"] = True
        return payload


ProgressCallback = Callable[[ProgressEvent], None]


@dataclass
class RunSummary:
    """Outcome of a run."""
    languages: List[str]
    file_format: str
    completed_files: int = 0
    total_files: int = 0
    strings_translated: int = 0
    missing_keys: Dict[str, List[str]] = field(default_factory=dict)  # "lang/file" -> keys
    failed_files: List[str] = field(default_factory=list)
    backend_calls: int = 0
    duration: float = 0.0
    cancelled: bool = False
    aborted: bool = False
    error: Optional[str] = None

    @property
    def success(self) -> bool:
        return not (self.cancelled or self.aborted)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "languages": self.languages,
            "file_format": self.file_format,
            "completed_files": self.completed_files,
            "total_files": self.total_files,
            "strings_translated": self.strings_translated,
            "missing_keys": self.missing_keys,
            "failed_files": self.failed_files,
            "backend_calls": self.backend_calls,
            "duration": round(self.duration, 2),
            "cancelled": self.cancelled,
            "aborted": self.aborted,
            "error": self.error,
            "success": self.success,
        }
