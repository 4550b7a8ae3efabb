from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from ..cluster.models import (
    ResourceNode,
    ResourceNodeDnsResult,
    ResourceSynchronizationResult,
    ResourceTestResult,
    ResultOutcome,
)
from ..config import ConfigurationError
from .base import SynchronizationStrategy
from .process import ProcessResult, run_step


@dataclass(frozen=True, kw_only=True)
class Csync2ResourceNode(ResourceNode):
    exe: str = "csync2"
    config: Optional[str] = None

    def __post_init__(self):
        super().__post_init__()
        if not self.exe:
            raise ConfigurationError(f"{self}: csync2 executable must be set")


def compare_outcome(result: ProcessResult) -> ResultOutcome:
    # csync2 -T exits 2 when both sides match and 0 when it printed differences
    if result.exit_code == 2:
        return ResultOutcome.SUCCESS
    return ResultOutcome.FAILURE


class Csync2Strategy(SynchronizationStrategy):
    """Runs csync2 for the configured groups between the two nodes.

    Any master or slave may synchronize with and test against any master or slave.
    """

    name = "csync2"

    def __init__(self, groups: Sequence[str]):
        if not groups:
            raise ConfigurationError("csync2 resources require at least one group")
        self.groups: Tuple[str, ...] = tuple(groups)

    def can_synchronize(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> bool:
        return local.status.is_active and remote.status.is_active

    def can_test(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> bool:
        return local.status.is_active and remote.status.is_active

    def _base_command(self, local_node: Csync2ResourceNode) -> List[str]:
        command = [local_node.exe]
        if local_node.config:
            command.extend(["-C", local_node.config])
        command.extend(["-G", ",".join(self.groups)])
        return command

    def push_command(self, local_node: Csync2ResourceNode, remote_node: Csync2ResourceNode) -> List[str]:
        return self._base_command(local_node) + ["-P", remote_node.node.hostname, "-xv"]

    def scan_command(self, local_node: Csync2ResourceNode) -> List[str]:
        return self._base_command(local_node) + ["-cr", "/"]

    def compare_command(self, local_node: Csync2ResourceNode, remote_node: Csync2ResourceNode) -> List[str]:
        return self._base_command(local_node) + ["-T", local_node.node.hostname, remote_node.node.hostname]

    async def synchronize(
        self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult
    ) -> ResourceSynchronizationResult:
        steps = [
            await run_step(self.push_command(local.resource_node, remote.resource_node)),
            await run_step(self.compare_command(local.resource_node, remote.resource_node), compare_outcome),
        ]
        return ResourceSynchronizationResult.from_steps(steps)

    async def test(self, local: ResourceNodeDnsResult, remote: ResourceNodeDnsResult) -> ResourceTestResult:
        steps = [
            await run_step(self.scan_command(local.resource_node)),
            await run_step(self.compare_command(local.resource_node, remote.resource_node), compare_outcome),
        ]
        return ResourceTestResult.from_steps(steps)

    def __repr__(self):
        return f"Csync2Strategy(groups={list(self.groups)})"
