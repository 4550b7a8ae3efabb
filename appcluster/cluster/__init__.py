from .models import (
    ActionKind,
    ActionState,
    Node,
    NodeDnsStatus,
    Resource,
    ResourceNode,
    ResourceNodeDnsResult,
    ResourceResult,
    ResourceSynchronizationResult,
    ResourceTestResult,
    ResultOutcome,
    ResultStep,
    SynchronizerState,
)
from .schedule import Schedule
from .synchronizer import ResourceSynchronizer, SynchronizerListener

__all__ = [
    "ActionKind",
    "ActionState",
    "Node",
    "NodeDnsStatus",
    "Resource",
    "ResourceNode",
    "ResourceNodeDnsResult",
    "ResourceResult",
    "ResourceSynchronizationResult",
    "ResourceTestResult",
    "ResultOutcome",
    "ResultStep",
    "SynchronizerState",
    "Schedule",
    "ResourceSynchronizer",
    "SynchronizerListener",
]
