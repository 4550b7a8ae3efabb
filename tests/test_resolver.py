"""Role determination from DNS records.

Tests cover:
1. determine_resource_status → master and slave from one set of lookups
2. Resource-wide consistency → any violation makes every node INCONSISTENT
3. allow_multi_master → several master addresses, each owned by a node
4. DnsRoleResolver → lookup failures become UNKNOWN, never exceptions
5. DnsRoleResolver → disabled nodes resolve to DISABLED
6. DnsRoleResolver → one lookup per name, zone id looked up once
7. DnsRoleResolver → status transitions are pushed to the notifier
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from appcluster.cloudflare_dns import DnsRoleResolver, determine_resource_status
from appcluster.cluster.models import NodeDnsStatus
from appcluster.strategies import Csync2Strategy

MASTER = {"www.example.com": {"10.0.0.1"}}
NODES = {
    "node1": {"www-node1.example.com": {"10.0.0.1"}},
    "node2": {"www-node2.example.com": {"10.0.0.2"}},
}


def statuses_of(master, nodes, allow_multi_master=False):
    statuses, _ = determine_resource_status(master, nodes, allow_multi_master)
    return statuses["node1"], statuses["node2"]


# ─────────────────────────────────────────────
#  determine_resource_status
# ─────────────────────────────────────────────
def test_master_and_slave():
    statuses, detail = determine_resource_status(MASTER, NODES)

    assert statuses == {"node1": NodeDnsStatus.MASTER, "node2": NodeDnsStatus.SLAVE}
    assert detail is None


def test_master_follows_master_record():
    assert statuses_of({"www.example.com": {"10.0.0.2"}}, NODES) == (NodeDnsStatus.SLAVE, NodeDnsStatus.MASTER)


@pytest.mark.parametrize(
    "master,nodes,reason",
    [
        ({"www.example.com": {"9.9.9.9"}}, NODES, "does not belong to any node"),
        ({"www.example.com": set()}, NODES, "no A records"),
        (
            {"www.example.com": {"10.0.0.1"}, "web.example.com": {"10.0.0.2"}},
            NODES,
            "master records disagree",
        ),
        ({"www.example.com": {"10.0.0.1", "10.0.0.2"}}, NODES, "multi-master not allowed"),
        (
            MASTER,
            {
                "node1": {"www-node1.example.com": {"10.0.0.1"}},
                "node2": {"www-node2.example.com": {"10.0.0.1"}},
            },
            "share the A record",
        ),
        (
            MASTER,
            {
                "node1": {"www-node1.example.com": {"10.0.0.1", "10.0.0.2"}},
                "node2": {"www-node2.example.com": {"10.0.0.3"}},
            },
            "exactly one A record",
        ),
        (
            MASTER,
            {
                "node1": {"www-node1.example.com": {"10.0.0.1"}, "web-node1.example.com": {"10.0.0.3"}},
                "node2": {"www-node2.example.com": {"10.0.0.2"}},
            },
            "node records disagree",
        ),
        (
            MASTER,
            {"node1": {"www-node1.example.com": {"10.0.0.1"}}, "node2": {"www-node2.example.com": set()}},
            "no A records",
        ),
    ],
    ids=[
        "master-points-at-third-host",
        "master-record-empty",
        "master-records-disagree",
        "several-masters-not-allowed",
        "nodes-share-address",
        "node-record-with-two-addresses",
        "node-records-disagree",
        "node-record-empty",
    ],
)
def test_inconsistent_resource(master, nodes, reason):
    statuses, detail = determine_resource_status(master, nodes)

    assert set(statuses.values()) == {NodeDnsStatus.INCONSISTENT}, "Both nodes are blocked"
    assert reason in detail


def test_two_slaves_under_foreign_master_cannot_synchronize(dns_result):
    local_status, remote_status = statuses_of({"www.example.com": {"9.9.9.9"}}, NODES)

    assert not Csync2Strategy(groups=["www"]).can_synchronize(
        dns_result(local_status, "node1"), dns_result(remote_status, "node2")
    )


@pytest.mark.parametrize(
    "master,nodes",
    [
        ({}, NODES),
        (MASTER, {"node1": {"www-node1.example.com": {"10.0.0.1"}}, "node2": {}}),
    ],
    ids=["no-master-records", "node-without-records"],
)
def test_unknown_without_records(master, nodes):
    statuses, detail = determine_resource_status(master, nodes)

    assert set(statuses.values()) == {NodeDnsStatus.UNKNOWN}
    assert detail


def test_multi_master():
    master = {"www.example.com": {"10.0.0.1", "10.0.0.2"}}

    assert statuses_of(master, NODES, allow_multi_master=True) == (NodeDnsStatus.MASTER, NodeDnsStatus.MASTER)


def test_multi_master_still_requires_known_addresses():
    master = {"www.example.com": {"10.0.0.1", "10.0.0.3"}}

    assert statuses_of(master, NODES, allow_multi_master=True) == (
        NodeDnsStatus.INCONSISTENT,
        NodeDnsStatus.INCONSISTENT,
    )


# ─────────────────────────────────────────────
#  DnsRoleResolver
# ─────────────────────────────────────────────
RECORDS = {
    "www.example.com": ["10.0.0.1"],
    "www-node1.example.com": ["10.0.0.1"],
    "www-node2.example.com": ["10.0.0.2"],
}


def make_client(records=None):
    records = dict(RECORDS if records is None else records)
    client = MagicMock()
    client.get_zone_id_by_domain = AsyncMock(return_value="zone-1")
    client.get_record_addresses = AsyncMock(side_effect=lambda zone_id, name: records.get(name, []))
    client.records = records
    return client


@pytest.fixture
def resource(make_resource):
    return make_resource(Csync2Strategy(groups=["www"]))


def test_resolver_master_and_slave(resource):
    client = make_client()
    resolver = DnsRoleResolver(client, "example.com")

    local, remote = asyncio.run(resolver.resolve_resource(resource))

    assert local.status is NodeDnsStatus.MASTER
    assert remote.status is NodeDnsStatus.SLAVE
    assert local.resource_node is resource.local
    assert remote.resource_node is resource.remote
    assert client.get_record_addresses.await_count == 3, "One lookup per record name"
    client.get_zone_id_by_domain.assert_awaited_once_with("example.com")


def test_resolver_foreign_master_is_inconsistent(resource):
    client = make_client({**RECORDS, "www.example.com": ["9.9.9.9"]})
    resolver = DnsRoleResolver(client, "example.com")

    local, remote = asyncio.run(resolver.resolve_resource(resource))

    assert local.status is NodeDnsStatus.INCONSISTENT
    assert remote.status is NodeDnsStatus.INCONSISTENT
    assert "9.9.9.9" in local.detail


def test_resolver_failure_is_unknown(resource):
    client = make_client()
    client.get_record_addresses = AsyncMock(side_effect=ConnectionError("api unreachable"))
    resolver = DnsRoleResolver(client, "example.com")

    local, remote = asyncio.run(resolver.resolve_resource(resource))

    assert local.status is NodeDnsStatus.UNKNOWN
    assert remote.status is NodeDnsStatus.UNKNOWN
    assert "api unreachable" in local.detail


def test_resolver_missing_zone_is_unknown(resource):
    client = make_client()
    client.get_zone_id_by_domain = AsyncMock(return_value=None)
    resolver = DnsRoleResolver(client, "example.org")

    local, _ = asyncio.run(resolver.resolve_resource(resource))

    assert local.status is NodeDnsStatus.UNKNOWN
    client.get_record_addresses.assert_not_awaited()


def test_resolver_disabled_node(make_resource):
    resource = make_resource(Csync2Strategy(groups=["www"]), local_enabled=False, remote_enabled=False)
    client = make_client()
    resolver = DnsRoleResolver(client, "example.com")

    local, remote = asyncio.run(resolver.resolve_resource(resource))

    assert local.status is NodeDnsStatus.DISABLED
    assert remote.status is NodeDnsStatus.DISABLED
    client.get_record_addresses.assert_not_awaited()


def test_resolver_master_on_disabled_node_is_inconsistent(make_resource):
    resource = make_resource(Csync2Strategy(groups=["www"]), local_enabled=False)
    resolver = DnsRoleResolver(make_client(), "example.com")

    local, remote = asyncio.run(resolver.resolve_resource(resource))

    assert local.status is NodeDnsStatus.DISABLED
    assert remote.status is NodeDnsStatus.INCONSISTENT


def test_resolver_notifies_transitions(resource):
    client = make_client()
    notifier = MagicMock()
    resolver = DnsRoleResolver(client, "example.com", notifier=notifier)

    async def scenario():
        first = await resolver.resolve_resource(resource)
        again = await resolver.resolve_resource(resource)
        client.records["www.example.com"] = ["10.0.0.2"]
        promoted = await resolver.resolve_resource(resource)
        return first, again, promoted

    first, again, promoted = asyncio.run(scenario())

    assert [result.status for result in first] == [NodeDnsStatus.MASTER, NodeDnsStatus.SLAVE]
    assert [result.status for result in again] == [NodeDnsStatus.MASTER, NodeDnsStatus.SLAVE]
    assert [result.status for result in promoted] == [NodeDnsStatus.SLAVE, NodeDnsStatus.MASTER]
    assert notifier.notify_dns_status_change.call_count == 2
    changes = {call.args[0].node_name: call.args[0] for call in notifier.notify_dns_status_change.call_args_list}
    assert changes["Node 2"].resource_id == "www"
    assert changes["Node 2"].previous_status == "slave"
    assert changes["Node 2"].current_status == "master"
    assert changes["Node 1"].current_status == "slave"
    client.get_zone_id_by_domain.assert_awaited_once()


def test_resolver_dns_notifications_can_be_disabled(resource):
    client = make_client()
    notifier = MagicMock()
    resolver = DnsRoleResolver(client, "example.com", notifier=notifier, notify_dns_changes=False)

    async def scenario():
        await resolver.resolve_resource(resource)
        client.records["www-node2.example.com"] = []
        return await resolver.resolve_resource(resource)

    _, remote = asyncio.run(scenario())

    assert remote.status is NodeDnsStatus.INCONSISTENT
    notifier.notify_dns_status_change.assert_not_called()
