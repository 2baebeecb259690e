from typing import Callable, Optional

from colorama import Fore, Style

from hoptrace.core.classifier import Outcome, outcome_marker
from hoptrace.core.network_utils import reverse_lookup
from hoptrace.core.probe_engine import HopRecord


class ConsoleColors:
    """colorama codes for terminal output"""
    CYAN = Fore.CYAN
    GREEN = Fore.GREEN
    YELLOW = Fore.YELLOW
    RED = Fore.RED
    ENDC = Style.RESET_ALL
    BOLD = Style.BRIGHT


class ConsoleFormatter:
    """Formatters for console output"""

    def __init__(
        self,
        colors: bool = False,
        numeric: bool = False,
        resolver: Callable[[str], str] = reverse_lookup
    ):
        """
        Args:
            colors: Wrap markers and addresses in colour codes
            numeric: Print addresses only, no reverse DNS
            resolver: Address to name lookup used when not numeric
        """
        self.colors = colors
        self.numeric = numeric
        self.resolver = resolver

    def _paint(self, text: str, color: str) -> str:
        if not self.colors:
            return text
        return f"{color}{text}{ConsoleColors.ENDC}"

    def header(self, hostname: str, address: str, max_ttl: int) -> str:
        return self._paint(
            f"traceroute to {hostname} ({address}), {max_ttl} hops max",
            ConsoleColors.BOLD,
        )

    def describe(self, address: str) -> str:
        if self.numeric:
            return address
        return f"{self.resolver(address)} ({address})"

    def format_hop(self, record: HopRecord) -> str:
        """
        Render one hop, e.g. `` 3  core1 (10.0.0.1)  1.204 ms *  1.311 ms !H``.

        A responder is printed only when it differs from the previous
        responder printed for this hop.
        """
        line = f"{record.ttl:2d} "
        shown: Optional[str] = None
        sep = " "

        for reply in record.probes:
            if reply.address is not None and reply.address != shown:
                color = ConsoleColors.GREEN if reply.outcome is Outcome.DESTINATION_REACHED \
                    else ConsoleColors.CYAN
                line += sep + self._paint(self.describe(reply.address), color)
                shown = reply.address
            sep = "  "

            if reply.rtt is None:
                line += " " + self._paint(outcome_marker(reply.outcome) or "*", ConsoleColors.YELLOW)
                continue

            line += f"  {reply.rtt * 1000:.3f} ms"
            marker = outcome_marker(reply.outcome)
            if marker:
                line += " " + self._paint(marker, ConsoleColors.RED)

        return line

    def error(self, msg: str) -> str:
        return self._paint(f"[✗] {msg}", ConsoleColors.RED)

    def warning(self, msg: str) -> str:
        return self._paint(f"[!] {msg}", ConsoleColors.YELLOW)
