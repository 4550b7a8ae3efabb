from dataclasses import dataclass
from typing import Optional


@dataclass
class NodeDnsStatusChange:
    resource_id: str
    node_name: str
    previous_status: str
    current_status: str
    detail: Optional[str] = None


@dataclass
class ResultChange:
    resource_id: str
    local_node: str
    remote_node: str
    action: str  # "synchronize" or "test"
    current_outcome: str
    previous_outcome: Optional[str] = None
    completed_at: Optional[str] = None
    message: Optional[str] = None


@dataclass
class ActionError:
    resource_id: str
    local_node: str
    remote_node: str
    action: str
    error_message: str
