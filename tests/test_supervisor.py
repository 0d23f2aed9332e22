import errno

import pytest
from conftest import SourceFactory, ip_packet, wait_until

from netsniff.core import persistence
from netsniff.core.supervisor import CaptureState, CaptureSupervisor
from netsniff.errors import CaptureRunningError, InvalidInterfaceName


def test_start_is_idempotent(config, sources):
    sup = CaptureSupervisor(config, source_factory=sources)

    assert sup.start() == 0
    assert sup.start() == 0

    assert sup.state is CaptureState.RUNNING
    assert len(sources.created) == 1
    sup.stop()


def test_stop_when_stopped_does_nothing(config, sources):
    sup = CaptureSupervisor(config, source_factory=sources)

    assert sup.stop() == 0

    assert sup.state is CaptureState.STOPPED
    assert not config.stats_dir.exists()


def test_stop_dumps_and_clears(config, sources):
    sup = CaptureSupervisor(config, source_factory=sources)
    sup.start()
    sources.last.feed(ip_packet("10.0.0.5"), ip_packet("10.0.0.9"), ip_packet("10.0.0.5"))
    assert wait_until(lambda: sup.get_count("10.0.0.5") == 2)

    assert sup.stop() == 0

    assert sup.state is CaptureState.STOPPED
    assert sup.stats.entry_count == 0
    assert (config.stats_dir / "eth0.stat").read_text() == "10.0.0.5;2\n10.0.0.9;1\n"
    assert sources.last.closed


def test_start_resumes_persisted_counts(config, sources):
    config.stats_dir.mkdir()
    (config.stats_dir / "eth0.stat").write_text("10.0.0.5;40\n")
    sup = CaptureSupervisor(config, source_factory=sources)

    sup.start()
    assert sup.get_count("10.0.0.5") == 40
    sources.last.feed(ip_packet("10.0.0.5"))
    assert wait_until(lambda: sup.get_count("10.0.0.5") == 41)
    sup.stop()

    assert (config.stats_dir / "eth0.stat").read_text() == "10.0.0.5;41\n"


def test_stop_reports_socket_failure(config):
    failing = SourceFactory(open_error=PermissionError(errno.EPERM, "Operation not permitted"))
    sup = CaptureSupervisor(config, source_factory=failing)

    assert sup.start() == 0
    assert sup.stop() == errno.EPERM
    assert sup.state is CaptureState.STOPPED


def test_set_interface_rejected_while_running(config, sources):
    sup = CaptureSupervisor(config, source_factory=sources)
    sup.start()

    with pytest.raises(CaptureRunningError):
        sup.set_interface("eth1")
    assert sup.interface == "eth0"

    sup.stop()
    sup.set_interface("eth1")
    sup.start()

    assert sources.last.interface == "eth1"
    assert sup.stats.interface == "eth1"
    sup.stop()
    assert (config.stats_dir / "eth1.stat").exists()


def test_set_interface_validates_name(config, sources):
    sup = CaptureSupervisor(config, source_factory=sources)
    with pytest.raises(InvalidInterfaceName):
        sup.set_interface("../../etc/passwd")
    assert sup.interface == "eth0"


def test_interface_tables(config, sources):
    config.stats_dir.mkdir()
    (config.stats_dir / "wlan0.stat").write_text("8.8.8.8;2\n")
    (config.stats_dir / "eth0.stat").write_text("10.0.0.1;7\n")
    sup = CaptureSupervisor(config, source_factory=sources)

    sup.start()
    sources.last.feed(ip_packet("10.0.0.2"))
    assert wait_until(lambda: sup.get_count("10.0.0.2") == 1)

    everything = sup.interface_tables()
    assert [name for name, _ in everything] == ["eth0", "wlan0"]
    # the running interface is read live, not from its file
    assert [(str(e.ip), e.count) for e in everything[0][1]] == [("10.0.0.1", 7), ("10.0.0.2", 1)]

    assert [(str(e.ip), e.count) for _, t in sup.interface_tables("wlan0") for e in t] == [("8.8.8.8", 2)]
    assert sup.interface_tables("eth9") == []
    sup.stop()


def test_interface_tables_when_stopped_come_from_disk(config, sources):
    sup = CaptureSupervisor(config, source_factory=sources)
    sup.start()
    sources.last.feed(ip_packet("10.0.0.3"))
    assert wait_until(lambda: sup.get_count("10.0.0.3") == 1)
    sup.stop()

    tables = sup.interface_tables()

    assert len(tables) == 1
    assert tables[0][0] == "eth0"
    assert persistence.load(sup.stats_path()).get_count("10.0.0.3") == 1
