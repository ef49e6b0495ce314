"""Outcome of a store transaction."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Dict, Any, Optional

from .records import utc_now


@dataclass
class TransactionError:
    """A remote failure recorded against a transaction."""

    entity_id: str
    error_type: str
    message: str
    details: Optional[Dict[str, Any]] = None
    timestamp: datetime = field(default_factory=utc_now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "entity_id": self.entity_id,
            "error_type": self.error_type,
            "message": self.message,
            "details": self.details,
            "timestamp": self.timestamp.isoformat()
        }


@dataclass
class TransactionResult:
    """Represents the result of one optimistic transaction."""

    operation: str
    success: bool = True
    entity_id: Optional[str] = None
    writes_committed: int = 0
    skipped_count: int = 0
    notice: Optional[str] = None
    reconciled: bool = False
    errors: List[TransactionError] = field(default_factory=list)
    duration: float = 0.0  # seconds
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None

    def __post_init__(self):
        """Initialize timestamps if not set."""
        if self.start_time is None:
            self.start_time = utc_now()

    def add_error(self, entity_id: str, error_type: str, message: str, details: Optional[Dict[str, Any]] = None):
        """Record a failure and mark the transaction unsuccessful."""
        self.errors.append(TransactionError(
            entity_id=entity_id,
            error_type=error_type,
            message=message,
            details=details
        ))
        self.success = False

    def finalize(self) -> "TransactionResult":
        """Finalize the result with end time and duration."""
        self.end_time = utc_now()
        if self.start_time:
            self.duration = (self.end_time - self.start_time).total_seconds()
        return self

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary representation."""
        return {
            "operation": self.operation,
            "success": self.success,
            "entity_id": self.entity_id,
            "writes_committed": self.writes_committed,
            "skipped_count": self.skipped_count,
            "notice": self.notice,
            "reconciled": self.reconciled,
            "duration": round(self.duration, 3),
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "errors": [error.to_dict() for error in self.errors]
        }

    def get_summary(self) -> str:
        """Get a human-readable summary."""
        status = "succeeded" if self.success else "failed"
        summary_lines = [
            f"{self.operation} {status} in {self.duration:.2f}s",
            f"Remote writes: {self.writes_committed}"
        ]
        if self.skipped_count:
            summary_lines.append(f"Skipped: {self.skipped_count}")
        if self.notice:
            summary_lines.append(self.notice)
        for error in self.errors[:5]:
            summary_lines.append(f"  - {error.entity_id}: {error.message}")
        return "\n".join(summary_lines)
