from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional

from .cluster.listeners import ResultNotifier
from .cluster.models import ActionKind, ActionState, Node, Resource, ResourceResult, SynchronizerState
from .cluster.synchronizer import ResourceSynchronizer, SynchronizerListener
from .config import Config
from .loader import load_nodes, load_resources
from .utils.logger import get_logger

if TYPE_CHECKING:
    from .cloudflare_dns import DnsRoleResolver
    from .telegram import TelegramNotifier


@dataclass(frozen=True)
class SynchronizerStatus:
    resource_id: str
    local_node: str
    remote_node: str
    state: SynchronizerState
    state_message: Optional[str]
    synchronize_state: ActionState
    test_state: ActionState
    last_synchronization_result: Optional[ResourceResult]
    last_test_result: Optional[ResourceResult]


class AppCluster:
    """Builds one synchronizer per configured resource and runs them."""

    def __init__(
        self,
        config: Config,
        resolver: "DnsRoleResolver",
        notifier: Optional["TelegramNotifier"] = None,
    ):
        self.config = config
        self.resolver = resolver
        self.notifier = notifier
        self.logger = get_logger(__name__)

        self.nodes: Dict[str, Node] = load_nodes(config)
        self.resources: List[Resource] = load_resources(config, self.nodes)

        listeners: List[SynchronizerListener] = []
        if notifier:
            listeners.append(
                ResultNotifier(
                    notifier,
                    notify_result_changes=config.telegram_notify_result_changes,
                    notify_errors=config.telegram_notify_errors,
                    timezone=config.timezone,
                    time_format=config.time_format,
                )
            )

        self.synchronizers: Dict[str, ResourceSynchronizer] = {
            resource.id: ResourceSynchronizer(resource, resolver, listeners) for resource in self.resources
        }

    @property
    def local_node(self) -> Node:
        return self.nodes[self.config.local_node_id]

    def print_resources(self) -> None:
        self.logger.info(f"Local node: {self.local_node} ({self.local_node.hostname})")
        if not self.config.cluster_enabled:
            self.logger.warning("Cluster is disabled, no resource will be synchronized")

        for resource in self.resources:
            self.logger.info(
                f"Resource: {resource.id} ({type(resource.strategy).__name__}), "
                f"enabled: {resource.enabled}, master records: {', '.join(resource.master_records) or 'none'}"
            )
            self.logger.info(f"  Nodes: {resource.local.node} -> {resource.remote.node}")
            self.logger.info(
                f"  Synchronize: '{resource.synchronize_schedule.expression}', "
                f"test: '{resource.test_schedule.expression}' ({resource.synchronize_schedule.tz.key})"
            )

    async def start(self) -> None:
        for synchronizer in self.synchronizers.values():
            await synchronizer.start()
        active = sum(1 for s in self.synchronizers.values() if s.state is SynchronizerState.ACTIVE)
        self.logger.info(f"Started {active}/{len(self.synchronizers)} synchronizers")

    async def stop(self) -> None:
        for synchronizer in self.synchronizers.values():
            await synchronizer.stop()
        self.logger.info("All synchronizers stopped")

    def get_synchronizer(self, resource_id: str) -> ResourceSynchronizer:
        try:
            return self.synchronizers[resource_id]
        except KeyError:
            raise KeyError(f"Unknown resource: {resource_id}") from None

    def status(self) -> List[SynchronizerStatus]:
        return [
            SynchronizerStatus(
                resource_id=resource_id,
                local_node=str(synchronizer.local_resource_node.node),
                remote_node=str(synchronizer.remote_resource_node.node),
                state=synchronizer.state,
                state_message=synchronizer.state_message,
                synchronize_state=synchronizer.action_state(ActionKind.SYNCHRONIZE),
                test_state=synchronizer.action_state(ActionKind.TEST),
                last_synchronization_result=synchronizer.last_synchronization_result,
                last_test_result=synchronizer.last_test_result,
            )
            for resource_id, synchronizer in self.synchronizers.items()
        ]

    def log_status(self) -> None:
        for status in self.status():
            line = f"{status.resource_id} [{status.state.value}]"
            if status.state_message:
                line += f" {status.state_message}"
            for label, action_state, result in (
                ("synchronize", status.synchronize_state, status.last_synchronization_result),
                ("test", status.test_state, status.last_test_result),
            ):
                outcome = result.outcome.name if result else "none"
                line += f", {label}: {action_state.value}/{outcome}"
            self.logger.info(line)
