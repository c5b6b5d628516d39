"""
Change Validator
Structural validation of proposed changes before they reach the user.

The validator:
1. Rejects changes with a zero or negative duration
2. Rejects changes that overlap an existing or already-accepted block
3. Keeps protected changes (lunch) even when they overlap, but flags them
"""
from dataclasses import dataclass, field

from utils import get_logger
from .helpers import format_time_range, parse_hhmm
from .models import Change, TimeBlock

logger = get_logger(__name__)


@dataclass
class ValidationResult:
    """Result of validating a batch of changes"""
    accepted: list[Change] = field(default_factory=list)
    rejected: list[Change] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.errors and not self.rejected

    def to_message(self) -> str:
        """Convert validation result to a short user-facing note"""
        parts = []
        if self.errors:
            parts.append("Some proposed changes were dropped:")
            parts.extend(f"  - {e}" for e in self.errors)
        if self.warnings:
            parts.append("A few things to note:")
            parts.extend(f"  - {w}" for w in self.warnings)
        return "\n".join(parts) if parts else f"Validated {len(self.accepted)} proposed changes"


@dataclass
class _Interval:
    start: int      # minutes since midnight
    end: int
    label: str

    def overlaps(self, other: "_Interval") -> bool:
        return self.start < other.end and other.start < self.end


def _minutes(value: str) -> int:
    t = parse_hhmm(value)
    return t.hour * 60 + t.minute


def _block_interval(block: TimeBlock) -> _Interval:
    start = block.start_time.hour * 60 + block.start_time.minute
    end = start + block.duration_minutes
    return _Interval(start, end, f"{block.title or block.type} ({block.start_time:%H:%M})")


def _change_interval(change: Change) -> _Interval | None:
    params = change.params
    if "start_time" not in params or "end_time" not in params:
        return None
    label = params.get("title") or params.get("block_id") or change.type
    return _Interval(_minutes(params["start_time"]), _minutes(params["end_time"]), label)


class ScheduleValidator:
    """Checks proposed changes against the current schedule and each other"""

    def validate(self, changes: list[Change], schedule: list[TimeBlock]) -> ValidationResult:
        result = ValidationResult()

        # Blocks being moved, consolidated or deleted no longer hold their old slot
        vacated: set[str] = set()
        for change in changes:
            params = change.params
            if change.type in ("move", "delete") and params.get("block_id"):
                vacated.add(params["block_id"])
            if change.type == "consolidate":
                vacated.update(params.get("block_ids", []))

        occupied = [_block_interval(b) for b in schedule if b.id not in vacated]
        accepted: list[_Interval] = []

        for change in changes:
            interval = _change_interval(change)
            if interval is None:
                result.accepted.append(change)
                continue

            if interval.end <= interval.start:
                result.rejected.append(change)
                result.errors.append(f"{interval.label} has no positive duration")
                continue

            # The consolidated span is filled by its own moves
            against = occupied if change.type == "consolidate" else occupied + accepted
            conflicts = [other.label for other in against if interval.overlaps(other)]

            if conflicts and not change.protected:
                result.rejected.append(change)
                result.warnings.append(
                    f"{interval.label} at {format_time_range(change.params['start_time'], change.params['end_time'])} "
                    f"overlaps {', '.join(conflicts)}"
                )
                continue

            if conflicts:
                change.conflicts = conflicts
                result.warnings.append(
                    f"{interval.label} is protected but overlaps {', '.join(conflicts)}; review before confirming"
                )

            result.accepted.append(change)
            if change.type != "consolidate":
                accepted.append(interval)

        logger.info(
            f"Validation complete: accepted={len(result.accepted)}, rejected={len(result.rejected)}"
        )
        return result
