from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Iterable, Optional, Tuple

from ..config import ConfigurationError

if TYPE_CHECKING:
    from .schedule import Schedule
    from ..strategies.base import SynchronizationStrategy


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class NodeDnsStatus(Enum):
    UNKNOWN = "unknown"
    DISABLED = "disabled"
    STOPPED = "stopped"
    STARTING = "starting"
    SLAVE = "slave"
    MASTER = "master"
    INCONSISTENT = "inconsistent"

    @property
    def is_active(self) -> bool:
        """Master or slave; every other status blocks synchronization."""
        return self in (NodeDnsStatus.MASTER, NodeDnsStatus.SLAVE)


class ResultOutcome(Enum):
    SKIPPED = 0
    SUCCESS = 1
    FAILURE = 2
    ERROR = 3

    @classmethod
    def worst(cls, outcomes: Iterable["ResultOutcome"], default: "ResultOutcome" = None) -> "ResultOutcome":
        worst = default if default is not None else cls.SUCCESS
        for outcome in outcomes:
            if outcome.value > worst.value:
                worst = outcome
        return worst


class ActionKind(Enum):
    SYNCHRONIZE = "synchronize"
    TEST = "test"


class ActionState(Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    EVALUATING = "evaluating"
    RUNNING = "running"
    DONE = "done"


class SynchronizerState(Enum):
    STOPPED = "stopped"
    DISABLED = "disabled"
    ACTIVE = "active"


@dataclass(frozen=True)
class Node:
    id: str
    hostname: str
    display: str = ""
    enabled: bool = True

    def __str__(self):
        return self.display or self.id


@dataclass(frozen=True)
class ResourceNode:
    """One node's participation in a resource.

    Subclasses add the settings their strategy needs and validate them in
    ``__post_init__``; a subclass must call ``super().__post_init__()``.
    """

    resource_id: str
    node: Node
    node_records: Tuple[str, ...] = ()

    def __post_init__(self):
        if not self.resource_id:
            raise ConfigurationError("Resource node requires a resource id")
        object.__setattr__(self, "node_records", tuple(self.node_records))

    def __str__(self):
        return f"{self.resource_id}@{self.node}"


@dataclass(frozen=True)
class ResourceNodeDnsResult:
    resource_node: ResourceNode
    status: NodeDnsStatus
    resolved_at: datetime = field(default_factory=utcnow)
    detail: Optional[str] = None

    @property
    def node(self) -> Node:
        return self.resource_node.node


@dataclass(frozen=True)
class ResultStep:
    started_at: datetime
    completed_at: datetime
    outcome: ResultOutcome
    command: str
    output: Optional[str] = None
    error: Optional[str] = None


@dataclass(frozen=True)
class ResourceResult:
    outcome: ResultOutcome
    started_at: datetime
    completed_at: datetime
    message: Optional[str] = None
    steps: Tuple[ResultStep, ...] = ()

    @classmethod
    def skipped(cls, started_at: datetime, message: str):
        return cls(outcome=ResultOutcome.SKIPPED, started_at=started_at, completed_at=utcnow(), message=message)

    @classmethod
    def error(cls, started_at: datetime, message: str):
        return cls(outcome=ResultOutcome.ERROR, started_at=started_at, completed_at=utcnow(), message=message)

    @classmethod
    def from_steps(cls, steps: Iterable[ResultStep], message: Optional[str] = None):
        steps = tuple(steps)
        if not steps:
            raise ValueError("At least one step is required")
        outcome = ResultOutcome.worst(step.outcome for step in steps)
        if message is None:
            failed = [step.command for step in steps if step.outcome is not ResultOutcome.SUCCESS]
            message = f"failed: {'; '.join(failed)}" if failed else None
        return cls(
            outcome=outcome,
            started_at=steps[0].started_at,
            completed_at=steps[-1].completed_at,
            message=message,
            steps=steps,
        )

    @property
    def duration(self) -> float:
        return (self.completed_at - self.started_at).total_seconds()


@dataclass(frozen=True)
class ResourceSynchronizationResult(ResourceResult):
    pass


@dataclass(frozen=True)
class ResourceTestResult(ResourceResult):
    pass


@dataclass(frozen=True)
class Resource:
    id: str
    local: ResourceNode
    remote: ResourceNode
    synchronize_schedule: "Schedule"
    test_schedule: "Schedule"
    strategy: "SynchronizationStrategy"
    display: str = ""
    enabled: bool = True
    allow_multi_master: bool = False
    master_records: Tuple[str, ...] = ()
    synchronize_timeout: Optional[float] = None
    test_timeout: Optional[float] = None

    def __post_init__(self):
        object.__setattr__(self, "master_records", tuple(self.master_records))
        for resource_node in (self.local, self.remote):
            if resource_node.resource_id != self.id:
                raise ConfigurationError(
                    f"Resource node {resource_node} does not belong to resource {self.id}"
                )
        if self.local.node.id == self.remote.node.id:
            raise ConfigurationError(f"Resource {self.id}: local and remote node are both {self.local.node.id}")
        for name, timeout in (("synchronize", self.synchronize_timeout), ("test", self.test_timeout)):
            if timeout is not None and timeout <= 0:
                raise ConfigurationError(f"Resource {self.id}: {name} timeout must be positive, got {timeout}")

    def __str__(self):
        return self.display or self.id
