"""
Hop Driver for hoptrace
=======================

Drives the TTL from ``first_ttl`` to ``max_ttl``, sending ``nqueries`` probes
per hop through one probe strategy, one probe in flight at a time. The trace
stops after the first hop at which any probe reached the destination.

Per-probe wait time is bounded by ProbeTiming: once replies have been seen at
this or the previous hop there is little point waiting much longer than a
small multiple of the fastest of them.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Iterator, List, Optional

from .classifier import Outcome
from .icmp_probe import IcmpProbe
from .probe_base import ProbeMode, ProbeReply, ProbeStrategy
from .tcp_probe import TcpProbe
from .udp_probe import UdpProbe

if TYPE_CHECKING:
    from hoptrace.config.config_manager import RunConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_TTL = 64
DEFAULT_MAX_WAIT = 5.0
DEFAULT_NEAR_MULTIPLIER = 10.0
DEFAULT_HERE_MULTIPLIER = 3.0


def compute_deadline(
    max_wait: float,
    near_multiplier: float,
    here_multiplier: float,
    prev_hop_rtt: float = math.inf,
    current_hop_rtt: float = math.inf
) -> float:
    """
    Wait budget in seconds for the next probe.

    ``prev_hop_rtt`` / ``current_hop_rtt`` are the fastest replies seen at the
    previous and current hop, ``math.inf`` when there were none. With no
    replies at all the result is ``max_wait``.
    """
    return min(
        max_wait,
        near_multiplier * prev_hop_rtt,
        here_multiplier * current_hop_rtt,
    )


class ProbeTiming:
    """
    Adaptive per-probe timeout controller.

    Attributes:
        max_wait: Upper bound for any wait, in seconds
        near_multiplier: Factor applied to the previous hop's fastest RTT
        here_multiplier: Factor applied to the current hop's fastest RTT
        prev_hop_rtt: Fastest RTT at the previous hop (inf if none)
        current_hop_rtt: Fastest RTT at the current hop so far (inf if none)
    """

    def __init__(
        self,
        max_wait: float = DEFAULT_MAX_WAIT,
        near_multiplier: float = DEFAULT_NEAR_MULTIPLIER,
        here_multiplier: float = DEFAULT_HERE_MULTIPLIER
    ):
        self.max_wait = max_wait
        self.near_multiplier = near_multiplier
        self.here_multiplier = here_multiplier
        self.prev_hop_rtt = math.inf
        self.current_hop_rtt = math.inf

    def get_timeout(self) -> float:
        """Deadline for the next probe."""
        return compute_deadline(
            self.max_wait,
            self.near_multiplier,
            self.here_multiplier,
            self.prev_hop_rtt,
            self.current_hop_rtt,
        )

    def record_rtt(self, rtt: float) -> None:
        self.current_hop_rtt = min(self.current_hop_rtt, rtt)

    def next_hop(self) -> None:
        self.prev_hop_rtt = self.current_hop_rtt
        self.current_hop_rtt = math.inf


@dataclass
class HopRecord:
    """All probe results for one TTL, in the order they were sent."""
    ttl: int
    probes: List[ProbeReply] = field(default_factory=list)

    @property
    def reached(self) -> bool:
        return any(p.outcome is Outcome.DESTINATION_REACHED for p in self.probes)

    @property
    def outcomes(self) -> List[Outcome]:
        return [p.outcome for p in self.probes]

    @property
    def best_rtt(self) -> Optional[float]:
        rtts = [p.rtt for p in self.probes if p.rtt is not None]
        return min(rtts) if rtts else None


def create_strategy(config: 'RunConfig', target: str) -> ProbeStrategy:
    """Instantiate the probe strategy selected by ``config.mode``."""
    if config.mode == ProbeMode.ICMP:
        return IcmpProbe(target, identifier=config.identifier)
    if config.mode == ProbeMode.UDP:
        return UdpProbe(target, base_port=config.udp_base_port,
                        payload_size=config.packet_size)
    if config.mode == ProbeMode.TCP:
        return TcpProbe(target, base_port=config.tcp_base_port,
                        increment_port=config.tcp_port_increment)
    raise ValueError(f"Unknown probe mode: {config.mode}")


class ProbeEngine:
    """
    Main hop driver.

    Attributes:
        strategy: Probe strategy every probe goes through
        first_ttl: First TTL probed
        max_ttl: Last TTL probed if the destination never answers
        nqueries: Probes per hop
        timing: ProbeTiming instance deciding each probe's deadline
        probes_sent: Number of probes issued so far
    """

    def __init__(
        self,
        strategy: ProbeStrategy,
        first_ttl: int = 1,
        max_ttl: int = DEFAULT_MAX_TTL,
        nqueries: int = 3,
        timing: Optional[ProbeTiming] = None
    ):
        """
        Args:
            strategy: Probe strategy to drive
            first_ttl: First TTL to probe
            max_ttl: Last TTL to probe
            nqueries: Probes per hop
            timing: Timeout controller (defaults to ProbeTiming())
        """
        self.strategy = strategy
        self.first_ttl = first_ttl
        self.max_ttl = max_ttl
        self.nqueries = nqueries
        self.timing = timing or ProbeTiming()
        self.probes_sent = 0

    @classmethod
    def from_config(cls, strategy: ProbeStrategy, config: 'RunConfig') -> 'ProbeEngine':
        timing = ProbeTiming(config.max_wait_time, config.near_multiplier,
                             config.here_multiplier)
        return cls(strategy, config.first_ttl, config.max_ttl, config.nqueries,
                   timing)

    def run_probe(self, ttl: int) -> ProbeReply:
        """Send one probe at ``ttl`` and wait for its outcome."""
        deadline = self.timing.get_timeout()
        self.strategy.prepare(ttl, deadline)
        token = self.strategy.send()
        self.probes_sent += 1
        reply = self.strategy.await_reply(token, deadline)
        if reply.rtt is not None:
            self.timing.record_rtt(reply.rtt)
        logger.debug(f"ttl={ttl} token={token} deadline={deadline:.3f}s -> {reply}")
        return reply

    def run_hop(self, ttl: int) -> HopRecord:
        record = HopRecord(ttl)
        for _ in range(self.nqueries):
            record.probes.append(self.run_probe(ttl))
        return record

    def run(self) -> Iterator[HopRecord]:
        """
        Yield one HopRecord per TTL until the destination answers or
        ``max_ttl`` is exhausted.
        """
        logger.info(
            f"Tracing {self.strategy.target} via {self.strategy.mode.value}, "
            f"ttl {self.first_ttl}-{self.max_ttl}, {self.nqueries} probes/hop"
        )
        for ttl in range(self.first_ttl, self.max_ttl + 1):
            record = self.run_hop(ttl)
            logger.info(f"Hop {ttl}: {[o.value for o in record.outcomes]}")
            yield record
            if record.reached:
                logger.info(f"Destination reached at hop {ttl}")
                return
            self.timing.next_hop()

    def trace(self) -> List[HopRecord]:
        """Run the whole trace and return every hop."""
        return list(self.run())
