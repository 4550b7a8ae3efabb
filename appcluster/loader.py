from typing import Any, Callable, Dict, List, Optional, Tuple

from .cluster.models import Node, Resource, ResourceNode
from .cluster.schedule import Schedule
from .config import Config, ConfigurationError
from .strategies import (
    Csync2ResourceNode,
    Csync2Strategy,
    RsyncResourceNode,
    RsyncStrategy,
    SynchronizationStrategy,
)
from .utils.logger import get_logger

logger = get_logger(__name__)

NodeFactory = Callable[[str, Node, List[str], dict], ResourceNode]


def _require(settings: dict, key: str, context: str) -> Any:
    value = settings.get(key)
    if value is None or value == "":
        raise ConfigurationError(f"{context}: missing '{key}'")
    return value


def _as_list(value: Any, context: str) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(item) for item in value]
    raise ConfigurationError(f"{context}: expected a name or list of names, got {value!r}")


def _timeout(settings: dict, key: str, context: str) -> Optional[float]:
    value = settings.get(key)
    if value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"{context}: '{key}' must be a number of seconds, got {value!r}") from e


def _rsync_node(resource_id: str, node: Node, node_records: List[str], settings: dict) -> ResourceNode:
    context = f"resource {resource_id}, node {node.id}"
    backup_days = settings.get("backup-days", 0)
    if isinstance(backup_days, str) and backup_days.strip().isdigit():
        backup_days = int(backup_days)
    return RsyncResourceNode(
        resource_id=resource_id,
        node=node,
        node_records=tuple(node_records),
        username=str(settings.get("username", "")),
        path=str(_require(settings, "path", context)),
        backup_dir=str(_require(settings, "backup-dir", context)),
        backup_days=backup_days,
    )


def _rsync_strategy(settings: dict) -> SynchronizationStrategy:
    return RsyncStrategy(
        delete=bool(settings.get("delete", True)),
        rsync=settings.get("rsync", "rsync"),
        ssh=settings.get("ssh", "ssh"),
    )


def _csync2_node(resource_id: str, node: Node, node_records: List[str], settings: dict) -> ResourceNode:
    return Csync2ResourceNode(
        resource_id=resource_id,
        node=node,
        node_records=tuple(node_records),
        exe=settings.get("exe", "csync2"),
        config=settings.get("config"),
    )


def _csync2_strategy(settings: dict) -> SynchronizationStrategy:
    return Csync2Strategy(groups=_as_list(settings.get("groups"), f"resource {settings.get('id')}"))


RESOURCE_TYPES: Dict[str, Tuple[NodeFactory, Callable[[dict], SynchronizationStrategy]]] = {
    "rsync": (_rsync_node, _rsync_strategy),
    "csync2": (_csync2_node, _csync2_strategy),
}


def _check_records(context: str, master_records: List[str], resource_nodes: List[ResourceNode]) -> None:
    owners: Dict[str, str] = {}
    for resource_node in resource_nodes:
        for record in resource_node.node_records:
            if record in master_records:
                raise ConfigurationError(f"{context}: node record {record} is also a master record")
            if owners.get(record, resource_node.node.id) != resource_node.node.id:
                raise ConfigurationError(
                    f"{context}: node record {record} is used by both {owners[record]} and {resource_node.node.id}"
                )
            owners[record] = resource_node.node.id


def load_nodes(config: Config) -> Dict[str, Node]:
    nodes: Dict[str, Node] = {}
    for settings in config.nodes:
        node_id = str(_require(settings, "id", "node"))
        if node_id in nodes:
            raise ConfigurationError(f"Duplicate node id: {node_id}")
        nodes[node_id] = Node(
            id=node_id,
            hostname=str(_require(settings, "hostname", f"node {node_id}")),
            display=settings.get("display", node_id),
            enabled=config.cluster_enabled and bool(settings.get("enabled", True)),
        )

    for attribute in ("display", "hostname"):
        seen: Dict[str, str] = {}
        for node in nodes.values():
            value = getattr(node, attribute)
            if value in seen:
                raise ConfigurationError(f"Nodes {seen[value]} and {node.id} have the same {attribute}: {value}")
            seen[value] = node.id

    if not nodes:
        raise ConfigurationError("No nodes configured")
    if config.local_node_id not in nodes:
        raise ConfigurationError(f"Local node '{config.local_node_id}' is not one of the configured nodes")
    return nodes


def load_resource(settings: dict, nodes: Dict[str, Node], local_node_id: str, config: Config) -> Resource:
    resource_id = str(_require(settings, "id", "resource"))
    context = f"resource {resource_id}"

    resource_type = _require(settings, "type", context)
    if resource_type not in RESOURCE_TYPES:
        raise ConfigurationError(f"{context}: unknown type '{resource_type}', expected one of {sorted(RESOURCE_TYPES)}")
    node_factory, strategy_factory = RESOURCE_TYPES[resource_type]

    node_settings = settings.get("nodes") or {}
    if not isinstance(node_settings, dict) or len(node_settings) != 2:
        raise ConfigurationError(f"{context}: 'nodes' must map exactly two node ids to their settings")
    if local_node_id not in node_settings:
        raise ConfigurationError(f"{context}: local node '{local_node_id}' does not take part in this resource")

    resource_nodes = {}
    for node_id, per_node in node_settings.items():
        node = nodes.get(str(node_id))
        if node is None:
            raise ConfigurationError(f"{context}: unknown node '{node_id}'")
        per_node = per_node or {}
        node_records = _as_list(_require(per_node, "node-records", f"{context}, node {node_id}"), context)
        resource_nodes[str(node_id)] = node_factory(resource_id, node, node_records, per_node)

    master_records = _as_list(_require(settings, "master-records", context), context)
    _check_records(context, master_records, list(resource_nodes.values()))

    remote_node_id = next(node_id for node_id in resource_nodes if node_id != local_node_id)

    return Resource(
        id=resource_id,
        display=settings.get("display", resource_id),
        enabled=config.cluster_enabled and bool(settings.get("enabled", True)),
        allow_multi_master=bool(settings.get("allow-multi-master", False)),
        master_records=tuple(master_records),
        local=resource_nodes[local_node_id],
        remote=resource_nodes[remote_node_id],
        synchronize_schedule=Schedule(_require(settings, "synchronize-schedule", context), config.schedule_timezone),
        test_schedule=Schedule(_require(settings, "test-schedule", context), config.schedule_timezone),
        synchronize_timeout=_timeout(settings, "synchronize-timeout", context),
        test_timeout=_timeout(settings, "test-timeout", context),
        strategy=strategy_factory(settings),
    )


def load_resources(config: Config, nodes: Dict[str, Node]) -> List[Resource]:
    resources: List[Resource] = []
    seen = set()
    displays = set()
    for settings in config.resources:
        resource = load_resource(settings, nodes, config.local_node_id, config)
        if resource.id in seen:
            raise ConfigurationError(f"Duplicate resource id: {resource.id}")
        if resource.display in displays:
            raise ConfigurationError(f"Duplicate resource display: {resource.display}")
        displays.add(resource.display)
        seen.add(resource.id)
        resources.append(resource)
        logger.debug(f"Loaded resource {resource.id} ({type(resource.strategy).__name__})")
    return resources
