import random
import threading
from ipaddress import IPv4Address

import pytest

from netsniff.core.stats import InterfaceStats, IPStat


def test_counts_match_observations():
    stats = InterfaceStats("eth0")

    for ip in ["10.0.0.5", "10.0.0.9", "10.0.0.5", "10.0.0.5"]:
        stats.upsert(ip)

    assert stats.get_count("10.0.0.5") == 3
    assert stats.get_count("10.0.0.9") == 1
    assert stats.get_count("10.0.0.1") == 0
    assert stats.entry_count == 2
    assert len(stats) == 2


def test_upsert_returns_running_count():
    stats = InterfaceStats()
    assert stats.upsert("192.168.1.1") == 1
    assert stats.upsert(IPv4Address("192.168.1.1")) == 2


def test_final_counts_do_not_depend_on_order():
    observed = ["10.0.0.%d" % (i % 7) for i in range(200)]
    shuffled = list(observed)
    random.Random(7).shuffle(shuffled)

    a = InterfaceStats()
    b = InterfaceStats()
    for ip in observed:
        a.upsert(ip)
    for ip in shuffled:
        b.upsert(ip)

    assert a.snapshot() == b.snapshot()


def test_snapshot_is_in_numeric_address_order():
    stats = InterfaceStats()
    for ip in ["10.0.0.10", "9.255.255.255", "10.0.0.2", "192.168.0.1", "10.0.0.2"]:
        stats.upsert(ip)

    snap = stats.snapshot()

    assert [str(e.ip) for e in snap] == ["9.255.255.255", "10.0.0.2", "10.0.0.10", "192.168.0.1"]
    assert snap[1] == IPStat(IPv4Address("10.0.0.2"), 2)


def test_snapshot_is_a_copy():
    stats = InterfaceStats()
    stats.upsert("1.1.1.1")
    snap = stats.snapshot()

    stats.upsert("1.1.1.1")
    stats.upsert("2.2.2.2")

    assert snap == [IPStat(IPv4Address("1.1.1.1"), 1)]


def test_clear_empties_the_store():
    stats = InterfaceStats("eth1")
    stats.upsert("1.1.1.1")
    stats.upsert("2.2.2.2")

    stats.clear()

    assert stats.entry_count == 0
    assert stats.snapshot() == []
    assert stats.get_count("1.1.1.1") == 0
    assert stats.interface == "eth1"


def test_set_count_overwrites():
    stats = InterfaceStats()
    stats.set_count("10.1.1.1", 5)
    stats.set_count("10.1.1.1", 2)
    assert stats.get_count("10.1.1.1") == 2
    assert stats.entry_count == 1

    with pytest.raises(ValueError):
        stats.set_count("10.1.1.1", -1)


def test_malformed_address_is_rejected():
    stats = InterfaceStats()
    with pytest.raises(ValueError):
        stats.upsert("10.0.0.256")
    with pytest.raises(ValueError):
        stats.get_count("not-an-ip")
    assert stats.entry_count == 0


def test_concurrent_upserts_are_not_lost():
    stats = InterfaceStats()
    addresses = ["172.16.0.%d" % i for i in range(10)]

    def worker():
        for _ in range(100):
            for ip in addresses:
                stats.upsert(ip)

    threads = [threading.Thread(target=worker) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert stats.entry_count == 10
    assert all(stats.get_count(ip) == 400 for ip in addresses)
