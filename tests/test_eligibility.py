"""Eligibility predicates of the bundled strategies.

Tests cover:
1. csync2 → both actions allowed iff both ends are master or slave
2. rsync → synchronize only from a master onto a slave
3. rsync → test between any master/slave pair
4. Predicates are pure (same inputs, same answer, inputs untouched)
"""

import itertools

import pytest

from appcluster.cluster.models import NodeDnsStatus
from appcluster.strategies import Csync2Strategy, RsyncStrategy

ACTIVE = {NodeDnsStatus.MASTER, NodeDnsStatus.SLAVE}
ALL_PAIRS = list(itertools.product(NodeDnsStatus, repeat=2))


# ─────────────────────────────────────────────
#  csync2
# ─────────────────────────────────────────────
@pytest.mark.parametrize("local_status,remote_status", ALL_PAIRS)
def test_csync2_requires_master_or_slave_on_both_sides(dns_result, local_status, remote_status):
    strategy = Csync2Strategy(groups=["www"])
    local = dns_result(local_status, "node1")
    remote = dns_result(remote_status, "node2")

    expected = local_status in ACTIVE and remote_status in ACTIVE
    assert strategy.can_synchronize(local, remote) is expected
    assert strategy.can_test(local, remote) is expected


@pytest.mark.parametrize(
    "blocking",
    [
        NodeDnsStatus.UNKNOWN,
        NodeDnsStatus.DISABLED,
        NodeDnsStatus.STARTING,
        NodeDnsStatus.STOPPED,
        NodeDnsStatus.INCONSISTENT,
    ],
)
def test_csync2_blocked_by_either_side(dns_result, blocking):
    strategy = Csync2Strategy(groups=["www"])
    master = dns_result(NodeDnsStatus.MASTER, "node1")
    other = dns_result(blocking, "node2")

    assert not strategy.can_synchronize(master, other)
    assert not strategy.can_synchronize(other, master)
    assert not strategy.can_test(master, other)
    assert not strategy.can_test(other, master)


# ─────────────────────────────────────────────
#  rsync
# ─────────────────────────────────────────────
@pytest.mark.parametrize("local_status,remote_status", ALL_PAIRS)
def test_rsync_synchronizes_master_to_slave_only(dns_result, local_status, remote_status):
    strategy = RsyncStrategy()
    local = dns_result(local_status, "node1")
    remote = dns_result(remote_status, "node2")

    expected = local_status == NodeDnsStatus.MASTER and remote_status == NodeDnsStatus.SLAVE
    assert strategy.can_synchronize(local, remote) is expected


def test_rsync_tests_in_both_directions(dns_result):
    strategy = RsyncStrategy()
    master = dns_result(NodeDnsStatus.MASTER, "node1")
    slave = dns_result(NodeDnsStatus.SLAVE, "node2")

    assert strategy.can_test(master, slave)
    assert strategy.can_test(slave, master)
    assert not strategy.can_synchronize(slave, master), "A slave must never push to the master"


def test_rsync_test_blocked_by_unknown(dns_result):
    strategy = RsyncStrategy()
    assert not strategy.can_test(dns_result(NodeDnsStatus.UNKNOWN, "node1"), dns_result(NodeDnsStatus.MASTER, "node2"))


def test_predicates_are_deterministic(dns_result):
    strategy = Csync2Strategy(groups=["www"])
    local = dns_result(NodeDnsStatus.MASTER, "node1")
    remote = dns_result(NodeDnsStatus.SLAVE, "node2")

    answers = {strategy.can_synchronize(local, remote) for _ in range(5)}
    assert answers == {True}
    assert local.status is NodeDnsStatus.MASTER
    assert remote.status is NodeDnsStatus.SLAVE
