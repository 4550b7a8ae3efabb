import pytest

from appcluster.cluster.models import Node, NodeDnsStatus, Resource, ResourceNode, ResourceNodeDnsResult
from appcluster.cluster.schedule import Schedule


@pytest.fixture
def nodes():
    return {
        "node1": Node(id="node1", hostname="node1.example.com", display="Node 1"),
        "node2": Node(id="node2", hostname="node2.example.com", display="Node 2"),
    }


@pytest.fixture
def make_resource(nodes):
    def factory(
        strategy,
        local_node=None,
        remote_node=None,
        local_enabled=True,
        remote_enabled=True,
        enabled=True,
        synchronize_timeout=None,
        test_timeout=None,
        synchronize_schedule=None,
        test_schedule=None,
    ):
        local = local_node or ResourceNode(
            resource_id="www",
            node=Node(id="node1", hostname="node1.example.com", display="Node 1", enabled=local_enabled),
            node_records=("www-node1.example.com",),
        )
        remote = remote_node or ResourceNode(
            resource_id="www",
            node=Node(id="node2", hostname="node2.example.com", display="Node 2", enabled=remote_enabled),
            node_records=("www-node2.example.com",),
        )
        return Resource(
            id="www",
            local=local,
            remote=remote,
            synchronize_schedule=synchronize_schedule or Schedule("*/5 * * * *"),
            test_schedule=test_schedule or Schedule("0 * * * *"),
            strategy=strategy,
            enabled=enabled,
            master_records=("www.example.com",),
            synchronize_timeout=synchronize_timeout,
            test_timeout=test_timeout,
        )

    return factory


@pytest.fixture
def dns_result(nodes):
    def factory(status: NodeDnsStatus, node_id: str = "node1", resource_node: ResourceNode = None):
        resource_node = resource_node or ResourceNode(resource_id="www", node=nodes[node_id])
        return ResourceNodeDnsResult(resource_node=resource_node, status=status)

    return factory
