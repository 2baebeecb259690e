"""
hoptrace v1.0.0 - TTL-limited forward path discovery
====================================================

Discovers the route to a destination by sending ICMP, UDP or TCP probes with
increasing TTL and interpreting the ICMP messages routers send back.

Usage:
    from hoptrace.config import ConfigManager
    from hoptrace.core.probe_engine import ProbeEngine, create_strategy

    run = ConfigManager().build_run_config("192.0.2.1", mode="udp")
    with create_strategy(run, "192.0.2.1") as strategy:
        for hop in ProbeEngine.from_config(strategy, run).run():
            print(hop.ttl, hop.outcomes)
"""

__version__ = "1.0.0"
__author__ = "hoptrace developers"

from hoptrace.core.classifier import Outcome
from hoptrace.core.probe_base import ProbeMode

__all__ = [
    'Outcome',
    'ProbeMode',
    '__version__',
]
