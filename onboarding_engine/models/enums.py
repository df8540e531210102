"""
Enumerations shared by models, schemas and services
"""
from enum import Enum


class StepStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"


# completed_at is set if and only if the status is one of these
TERMINAL_STATUSES = frozenset({StepStatus.COMPLETED, StepStatus.SKIPPED, StepStatus.FAILED})


class MilestoneType(str, Enum):
    PROGRESS = "progress"
    COMPLETION = "completion"
    TIME_BASED = "time_based"
    ACHIEVEMENT = "achievement"


class BlockerType(str, Enum):
    TECHNICAL = "technical"
    CONTENT = "content"
    USER_UNDERSTANDING = "user_understanding"
    SYSTEM = "system"
    ENGAGEMENT = "engagement"
    TIME_PRESSURE = "time_pressure"
    UNKNOWN = "unknown"


class Level(str, Enum):
    """Severity / impact level of a blocker"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ErrorSignal(str, Enum):
    """Known keys of a step's errors map, used to classify blockers"""
    VALIDATION = "validation"
    INPUT = "input"
    TECHNICAL = "technical"
    SYSTEM = "system"
    TIMEOUT = "timeout"
    NETWORK = "network"

    @classmethod
    def parse_keys(cls, errors) -> frozenset:
        """Known signals present in an errors map; unknown keys are ignored"""
        known = {member.value: member for member in cls}
        return frozenset(known[key] for key in (errors or {}) if key in known)


class Trend(str, Enum):
    INCREASING = "increasing"
    STABLE = "stable"
    DECREASING = "decreasing"


class ConflictResolution(str, Enum):
    SERVER_WINS = "server_wins"
    LOCAL_WINS = "local_wins"
    MERGED = "merged"  # reserved, synchronization only reports conflicts
