"""Shared fakes and wire fixtures for the hoptrace tests."""

import socket
from collections import defaultdict, deque
from typing import Callable, Iterable, Optional

import pytest
from scapy.layers.inet import ICMP, IP, TCP, UDP

from hoptrace.core.classifier import Outcome
from hoptrace.core.probe_base import ProbeMode, ProbeReply

LOCAL = "192.0.2.10"
TARGET = "203.0.113.9"
ROUTER = "198.51.100.1"
OTHER_HOST = "203.0.113.200"

IDENT = 0x1234
SEQ = 1


# -- wire fixtures ------------------------------------------------------------

def echo_reply(identifier=IDENT, sequence=SEQ, src=TARGET) -> bytes:
    return bytes(IP(src=src, dst=LOCAL) / ICMP(type=0, id=identifier, seq=sequence))


def echo_request(identifier=IDENT, sequence=SEQ) -> bytes:
    return bytes(IP(src=LOCAL, dst=TARGET) / ICMP(type=8, id=identifier, seq=sequence))


def icmp_error(icmp_type, code, inner, src=ROUTER, dst=TARGET) -> bytes:
    """ICMP error from ``src`` quoting ``inner`` sent towards ``dst``."""
    return bytes(
        IP(src=src, dst=LOCAL)
        / ICMP(type=icmp_type, code=code)
        / IP(src=LOCAL, dst=dst, ttl=1)
        / inner
    )


def quoted_udp(dport, sport=45000):
    return UDP(sport=sport, dport=dport)


def quoted_tcp(sport, dport=80):
    return TCP(sport=sport, dport=dport, flags="S")


def quoted_echo(identifier=IDENT, sequence=SEQ):
    return ICMP(type=8, id=identifier, seq=sequence)


# -- fakes --------------------------------------------------------------------

class FakeClock:
    """Monotonic clock under test control."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeRawSocket:
    """
    Raw ICMP socket replaying scripted datagrams.

    Each datagram is (packet, source_ip, delay); reading it advances the
    clock by ``delay``. An empty queue behaves like an expired timeout.
    """

    def __init__(self, clock: Optional[FakeClock] = None, datagrams: Iterable = ()):
        self.clock = clock
        self.queue = deque()
        self.timeouts = []
        self.options = []
        self.sent = []
        self.closed = False
        for datagram in datagrams:
            self.push(*datagram)

    def push(self, packet: bytes, source: str = ROUTER, delay: float = 0.0) -> None:
        self.queue.append((packet, source, delay))

    def settimeout(self, value) -> None:
        self.timeouts.append(value)

    def setsockopt(self, level, option, value) -> None:
        self.options.append((level, option, value))

    def sendto(self, data, address) -> int:
        self.sent.append((data, address))
        return len(data)

    def recvfrom(self, size):
        if self.closed:
            raise OSError(9, "Bad file descriptor")
        if not self.queue:
            raise socket.timeout("timed out")
        packet, source, delay = self.queue.popleft()
        if self.clock is not None:
            self.clock.advance(delay)
        return packet[:size], (source, 0)

    def fileno(self) -> int:
        return -1

    def close(self) -> None:
        self.closed = True


class FakeStreamSocket:
    """Non-blocking TCP socket whose connect_ex() results are scripted."""

    def __init__(self, connect_results, local_port: int = 40000):
        self.results = deque(connect_results)
        self.local_port = local_port
        self.connects = []
        self.options = []
        self.closed = False

    def connect_ex(self, address) -> int:
        self.connects.append(address)
        if len(self.results) > 1:
            return self.results.popleft()
        return self.results[0]

    def getsockname(self):
        return LOCAL, self.local_port

    def setsockopt(self, level, option, value) -> None:
        self.options.append((level, option, value))

    def close(self) -> None:
        self.closed = True


class FakeSelect:
    """
    select.select replacement.

    Steps: "tcp" reports the TCP socket ready, "icmp" the raw socket,
    ("both") both, None lets the full timeout elapse on the fake clock.
    """

    def __init__(self, clock: FakeClock, steps: Iterable = ()):
        self.clock = clock
        self.steps = deque(steps)
        self.calls = []

    def __call__(self, rlist, wlist, xlist, timeout):
        self.calls.append((list(rlist), list(wlist), list(xlist), timeout))
        step = self.steps.popleft() if self.steps else None
        if step is None:
            self.clock.advance(timeout)
            return [], [], []
        readable = list(rlist) if step in ("icmp", "both") else []
        writable = list(wlist) if step in ("tcp", "both") else []
        return readable, writable, []


class ScriptedStrategy:
    """Probe strategy stand-in driven by ``script(ttl, query) -> ProbeReply``."""

    mode = ProbeMode.UDP
    target = TARGET

    def __init__(self, script: Callable[[int, int], ProbeReply]):
        self.script = script
        self.prepared = []
        self.sent = 0
        self.closed = False
        self._ttl = None
        self._queries = defaultdict(int)

    def prepare(self, ttl, deadline):
        self._ttl = ttl
        self.prepared.append((ttl, deadline))

    def send(self):
        self.sent += 1
        return self.sent

    def await_reply(self, token, deadline):
        query = self._queries[self._ttl]
        self._queries[self._ttl] += 1
        return self.script(self._ttl, query)

    def close(self):
        self.closed = True

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False


def reply(outcome: Outcome, address: Optional[str] = ROUTER, rtt: Optional[float] = 0.010) -> ProbeReply:
    if outcome is Outcome.TIMEOUT:
        return ProbeReply.timeout()
    return ProbeReply(outcome, address, rtt)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def recv_sock(clock):
    return FakeRawSocket(clock)
