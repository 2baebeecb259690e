import pytest

from hoptrace.core.classifier import Outcome
from hoptrace.core.udp_probe import UDP_BASE_PORT, UdpProbe

from .conftest import (
    OTHER_HOST,
    ROUTER,
    TARGET,
    FakeRawSocket,
    icmp_error,
    quoted_tcp,
    quoted_udp,
)


@pytest.fixture
def send_sock():
    return FakeRawSocket()


@pytest.fixture
def probe(clock, recv_sock, send_sock):
    return UdpProbe(TARGET, send_sock=send_sock, recv_sock=recv_sock, clock=clock)


def test_destination_port_increments_from_base(probe, send_sock):
    probe.prepare(1, 1.0)
    ports = [probe.send() for _ in range(3)]

    assert ports == [UDP_BASE_PORT, UDP_BASE_PORT + 1, UDP_BASE_PORT + 2]
    assert [address for _, address in send_sock.sent] == [(TARGET, port) for port in ports]


def test_port_wraps_back_to_base():
    probe = UdpProbe(TARGET, base_port=65535, send_sock=FakeRawSocket(), recv_sock=FakeRawSocket())
    assert [probe.send() for _ in range(2)] == [65535, 65535]


def test_time_exceeded_for_current_port(probe, recv_sock):
    probe.prepare(2, 1.0)
    token = probe.send()
    recv_sock.push(icmp_error(11, 0, quoted_udp(dport=token)), ROUTER, delay=0.012)

    reply = probe.await_reply(token, 1.0)

    assert reply.outcome is Outcome.TTL_EXPIRED
    assert reply.address == ROUTER
    assert reply.rtt == pytest.approx(0.012)


def test_stale_port_is_not_reported(probe, recv_sock):
    probe.prepare(1, 1.0)
    stale = probe.send()
    probe.prepare(2, 1.0)
    current = probe.send()
    recv_sock.push(icmp_error(11, 0, quoted_udp(dport=stale)))

    reply = probe.await_reply(current, 1.0)

    assert reply.outcome is Outcome.TIMEOUT


def test_stale_port_skipped_before_match(probe, recv_sock):
    probe.prepare(3, 1.0)
    token = probe.send()
    recv_sock.push(icmp_error(11, 0, quoted_udp(dport=token - 1)))
    recv_sock.push(icmp_error(11, 0, quoted_udp(dport=token), dst=OTHER_HOST))
    recv_sock.push(icmp_error(11, 0, quoted_tcp(sport=45000, dport=token)))
    recv_sock.push(icmp_error(11, 0, quoted_udp(dport=token)), "198.51.100.3")

    reply = probe.await_reply(token, 1.0)

    assert reply.outcome is Outcome.TTL_EXPIRED
    assert reply.address == "198.51.100.3"


def test_port_unreachable_at_destination_is_reached(probe, recv_sock):
    for ttl in range(1, 4):
        probe.prepare(ttl, 1.0)
        probe.send()
    probe.prepare(4, 1.0)
    token = probe.send()
    recv_sock.push(icmp_error(3, 3, quoted_udp(dport=token), src=TARGET), TARGET)

    reply = probe.await_reply(token, 1.0)

    assert reply.outcome is Outcome.DESTINATION_REACHED
    assert reply.outcome is not Outcome.PROTOCOL_UNREACHABLE
    assert reply.address == TARGET


def test_host_unreachable(probe, recv_sock):
    probe.prepare(5, 1.0)
    token = probe.send()
    recv_sock.push(icmp_error(3, 1, quoted_udp(dport=token)))

    assert probe.await_reply(token, 1.0).outcome is Outcome.HOST_UNREACHABLE


def test_discarded_datagrams_consume_the_deadline(probe, recv_sock):
    probe.prepare(6, 1.0)
    token = probe.send()
    recv_sock.push(icmp_error(11, 0, quoted_udp(dport=token - 1)), delay=0.6)
    recv_sock.push(icmp_error(11, 0, quoted_udp(dport=token - 2)), delay=0.6)
    recv_sock.push(icmp_error(11, 0, quoted_udp(dport=token)))

    reply = probe.await_reply(token, 1.0)

    assert reply.outcome is Outcome.TIMEOUT
    assert recv_sock.timeouts[1:] == [pytest.approx(1.0), pytest.approx(0.4)]
    assert len(recv_sock.queue) == 1
