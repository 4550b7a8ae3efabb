from .config import Config, ConfigurationError
from .cluster import (
    ActionKind,
    ActionState,
    Node,
    NodeDnsStatus,
    Resource,
    ResourceNode,
    ResourceNodeDnsResult,
    ResourceSynchronizationResult,
    ResourceSynchronizer,
    ResourceTestResult,
    ResultOutcome,
    Schedule,
)
from .strategies import SynchronizationStrategy, RsyncStrategy, Csync2Strategy
from .cloudflare_dns import CloudflareClient, DnsRoleResolver
from .app_cluster import AppCluster

__all__ = [
    "Config",
    "ConfigurationError",
    "ActionKind",
    "ActionState",
    "Node",
    "NodeDnsStatus",
    "Resource",
    "ResourceNode",
    "ResourceNodeDnsResult",
    "ResourceSynchronizationResult",
    "ResourceSynchronizer",
    "ResourceTestResult",
    "ResultOutcome",
    "Schedule",
    "SynchronizationStrategy",
    "RsyncStrategy",
    "Csync2Strategy",
    "CloudflareClient",
    "DnsRoleResolver",
    "AppCluster",
]
