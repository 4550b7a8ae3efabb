from typing import TYPE_CHECKING, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .client import CloudflareClient
from ..cluster.models import NodeDnsStatus, Resource, ResourceNode, ResourceNodeDnsResult, utcnow
from ..utils.logger import get_logger

if TYPE_CHECKING:
    from ..telegram import TelegramNotifier

Lookups = Dict[str, Set[str]]


def _addresses(addresses: Iterable[str]) -> str:
    return ",".join(sorted(addresses)) or "none"


def _check_master_records(master_lookups: Lookups, allow_multi_master: bool) -> Optional[str]:
    first_name, first_addresses = None, None
    for name, addresses in master_lookups.items():
        if not addresses:
            return f"master record {name} has no A records"
        if len(addresses) > 1 and not allow_multi_master:
            return f"master record {name} has several A records ({_addresses(addresses)}), multi-master not allowed"
        if first_name is None:
            first_name, first_addresses = name, addresses
        elif addresses != first_addresses:
            return (
                f"master records disagree: {first_name}={_addresses(first_addresses)}, "
                f"{name}={_addresses(addresses)}"
            )
    return None


def _collect_node_addresses(node_lookups: Dict[str, Lookups]) -> Tuple[Dict[str, str], Optional[str]]:
    """Maps every node's single A address to its node id, or explains why it can't."""
    owners: Dict[str, str] = {}
    for node_id, lookups in node_lookups.items():
        first_name, first_addresses = None, None
        for name, addresses in lookups.items():
            if not addresses:
                return owners, f"node record {name} has no A records"
            if len(addresses) > 1:
                return owners, f"node record {name} must have exactly one A record, has {_addresses(addresses)}"
            if first_name is None:
                first_name, first_addresses = name, addresses
                address = next(iter(addresses))
                if address in owners:
                    return owners, f"nodes {owners[address]} and {node_id} share the A record {address}"
                owners[address] = node_id
            elif addresses != first_addresses:
                return owners, (
                    f"node records disagree: {first_name}={_addresses(first_addresses)}, "
                    f"{name}={_addresses(addresses)}"
                )
    return owners, None


def determine_resource_status(
    master_lookups: Lookups,
    node_lookups: Dict[str, Lookups],
    allow_multi_master: bool = False,
) -> Tuple[Dict[str, NodeDnsStatus], Optional[str]]:
    """Derives the role of every node of a resource from one set of lookups.

    ``node_lookups`` maps node id to that node's record lookups. Rules for the
    whole resource, any violation making every node INCONSISTENT:

    - master records agree, and hold one address unless ``allow_multi_master``
    - every node record holds exactly one address
    - no two nodes share an address
    - every master address belongs to a node

    A node is then MASTER when its address is a master address, else SLAVE.
    """

    def everyone(status: NodeDnsStatus) -> Dict[str, NodeDnsStatus]:
        return {node_id: status for node_id in node_lookups}

    if not master_lookups:
        return everyone(NodeDnsStatus.UNKNOWN), "resource has no master records"
    missing = [node_id for node_id, lookups in node_lookups.items() if not lookups]
    if missing:
        return everyone(NodeDnsStatus.UNKNOWN), f"no node records for {', '.join(missing)}"

    reason = _check_master_records(master_lookups, allow_multi_master)
    if reason:
        return everyone(NodeDnsStatus.INCONSISTENT), reason

    owners, reason = _collect_node_addresses(node_lookups)
    if reason:
        return everyone(NodeDnsStatus.INCONSISTENT), reason

    master_addresses = next(iter(master_lookups.values()))
    strays = sorted(address for address in master_addresses if address not in owners)
    if strays:
        return everyone(NodeDnsStatus.INCONSISTENT), (
            f"master address {', '.join(strays)} does not belong to any node"
        )

    statuses = {node_id: NodeDnsStatus.SLAVE for node_id in node_lookups}
    for address in master_addresses:
        statuses[owners[address]] = NodeDnsStatus.MASTER
    return statuses, None


class DnsRoleResolver:
    """Resolves the DNS roles of both nodes of a resource from one round of lookups."""

    def __init__(
        self,
        client: CloudflareClient,
        zone: str,
        notifier: Optional["TelegramNotifier"] = None,
        notify_dns_changes: bool = True,
    ):
        self.client = client
        self.zone = zone
        self.logger = get_logger(__name__)
        self.notifier = notifier
        self.notify_dns_changes = notify_dns_changes
        self._zone_id: Optional[str] = None
        self._previous_statuses: Dict[Tuple[str, str], NodeDnsStatus] = {}

    async def resolve_resource(self, resource: Resource) -> Tuple[ResourceNodeDnsResult, ResourceNodeDnsResult]:
        """Returns the (local, remote) results; lookup failures become UNKNOWN."""
        resolved_at = utcnow()
        enabled = [resource_node for resource_node in (resource.local, resource.remote) if resource_node.node.enabled]

        statuses: Dict[str, NodeDnsStatus] = {}
        detail: Optional[str] = None
        if enabled:
            try:
                statuses, detail = await self._lookup_statuses(resource, enabled)
            except Exception as e:
                self.logger.error(f"{resource}: DNS lookup failed: {e}")
                statuses = {resource_node.node.id: NodeDnsStatus.UNKNOWN for resource_node in enabled}
                detail = f"lookup failed: {e}"

        results = []
        for resource_node in (resource.local, resource.remote):
            if resource_node.node.enabled:
                result = ResourceNodeDnsResult(
                    resource_node=resource_node,
                    status=statuses[resource_node.node.id],
                    resolved_at=resolved_at,
                    detail=detail,
                )
            else:
                result = ResourceNodeDnsResult(
                    resource_node=resource_node,
                    status=NodeDnsStatus.DISABLED,
                    resolved_at=resolved_at,
                    detail="node disabled",
                )
            self._check_transition(result)
            results.append(result)

        return results[0], results[1]

    async def _lookup_statuses(
        self, resource: Resource, resource_nodes: List[ResourceNode]
    ) -> Tuple[Dict[str, NodeDnsStatus], Optional[str]]:
        zone_id = await self._get_zone_id()
        if not zone_id:
            return (
                {resource_node.node.id: NodeDnsStatus.UNKNOWN for resource_node in resource_nodes},
                f"zone {self.zone} not found",
            )

        # Each name is looked up once, even when shared between records
        cache: Lookups = {}
        master_lookups = await self._lookup_all(zone_id, resource.master_records, cache)
        node_lookups = {
            resource_node.node.id: await self._lookup_all(zone_id, resource_node.node_records, cache)
            for resource_node in resource_nodes
        }

        return determine_resource_status(master_lookups, node_lookups, resource.allow_multi_master)

    async def _lookup_all(self, zone_id: str, names: Sequence[str], cache: Lookups) -> Lookups:
        lookups = {}
        for name in names:
            if name not in cache:
                addresses: List[str] = await self.client.get_record_addresses(zone_id, name)
                cache[name] = set(addresses)
            lookups[name] = cache[name]
        return lookups

    async def _get_zone_id(self) -> Optional[str]:
        if self._zone_id:
            return self._zone_id

        zone_id = await self.client.get_zone_id_by_domain(self.zone)
        if zone_id:
            self._zone_id = zone_id

        return zone_id

    def _check_transition(self, result: ResourceNodeDnsResult) -> None:
        key = (result.resource_node.resource_id, result.node.id)
        previous = self._previous_statuses.get(key)
        self._previous_statuses[key] = result.status

        if previous is None or previous == result.status:
            return

        detail = f" ({result.detail})" if result.detail else ""
        self.logger.info(f"{result.resource_node}: DNS status {previous.value} -> {result.status.value}{detail}")

        if self.notifier and self.notify_dns_changes:
            from ..telegram import NodeDnsStatusChange

            self.notifier.notify_dns_status_change(
                NodeDnsStatusChange(
                    resource_id=result.resource_node.resource_id,
                    node_name=str(result.node),
                    previous_status=previous.value,
                    current_status=result.status.value,
                    detail=result.detail,
                )
            )
