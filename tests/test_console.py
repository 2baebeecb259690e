from hoptrace.core.classifier import Outcome
from hoptrace.core.probe_engine import HopRecord
from hoptrace.output.console import ConsoleColors, ConsoleFormatter

from .conftest import ROUTER, TARGET, reply

OTHER_ROUTER = "198.51.100.2"


def numeric():
    return ConsoleFormatter(numeric=True)


def test_header():
    assert numeric().header("example.net", TARGET, 30) == \
        f"traceroute to example.net ({TARGET}), 30 hops max"


def test_repeated_address_printed_once():
    record = HopRecord(3, [
        reply(Outcome.TTL_EXPIRED, ROUTER, 0.001204),
        reply(Outcome.TTL_EXPIRED, ROUTER, 0.0013),
        reply(Outcome.TTL_EXPIRED, OTHER_ROUTER, 0.002),
    ])

    assert numeric().format_hop(record) == \
        f" 3  {ROUTER}  1.204 ms  1.300 ms  {OTHER_ROUTER}  2.000 ms"


def test_timeouts_print_star():
    record = HopRecord(12, [reply(Outcome.TIMEOUT)] * 3)

    assert numeric().format_hop(record) == "12  * * *"


def test_address_repeated_after_timeout_is_not_reprinted():
    record = HopRecord(4, [
        reply(Outcome.TTL_EXPIRED, ROUTER, 0.010),
        reply(Outcome.TIMEOUT),
        reply(Outcome.TTL_EXPIRED, ROUTER, 0.011),
    ])

    assert numeric().format_hop(record) == f" 4  {ROUTER}  10.000 ms *  11.000 ms"


def test_markers():
    record = HopRecord(6, [
        reply(Outcome.HOST_UNREACHABLE, ROUTER, 0.005),
        reply(Outcome.NETWORK_UNREACHABLE, ROUTER, 0.005),
        reply(Outcome.PROTOCOL_UNREACHABLE, ROUTER, 0.005),
    ])

    line = numeric().format_hop(record)

    assert line == f" 6  {ROUTER}  5.000 ms !H  5.000 ms !N  5.000 ms !P"


def test_destination_has_no_marker():
    record = HopRecord(9, [reply(Outcome.DESTINATION_REACHED, TARGET, 0.0201)])

    assert numeric().format_hop(record) == f" 9  {TARGET}  20.100 ms"


def test_names_resolved_unless_numeric():
    formatter = ConsoleFormatter(resolver=lambda address: "core1.example.net")
    record = HopRecord(1, [reply(Outcome.TTL_EXPIRED, ROUTER, 0.001)])

    assert formatter.format_hop(record) == f" 1  core1.example.net ({ROUTER})  1.000 ms"


def test_no_escape_codes_without_colors():
    formatter = numeric()
    record = HopRecord(2, [reply(Outcome.HOST_UNREACHABLE, ROUTER, 0.001), reply(Outcome.TIMEOUT)])

    text = formatter.format_hop(record) + formatter.error("boom") + formatter.warning("hmm")

    assert "\x1b[" not in text


def test_colors_wrap_markers():
    formatter = ConsoleFormatter(colors=True, numeric=True)
    record = HopRecord(2, [reply(Outcome.HOST_UNREACHABLE, ROUTER, 0.001)])

    line = formatter.format_hop(record)

    assert f"{ConsoleColors.RED}!H{ConsoleColors.ENDC}" in line
    assert f"{ConsoleColors.CYAN}{ROUTER}{ConsoleColors.ENDC}" in line


def test_responder_after_value_keeps_two_space_columns():
    record = HopRecord(5, [
        reply(Outcome.TIMEOUT),
        reply(Outcome.HOST_UNREACHABLE, ROUTER, 0.003),
        reply(Outcome.TTL_EXPIRED, OTHER_ROUTER, 0.004),
    ])

    assert numeric().format_hop(record) == \
        f" 5  *  {ROUTER}  3.000 ms !H  {OTHER_ROUTER}  4.000 ms"
