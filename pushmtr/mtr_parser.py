"""Parser for ``mtr --report -n`` text output."""

import logging
import re

from pushmtr.errors import ReportParseError
from pushmtr.models import HopRecord

logger = logging.getLogger(__name__)

# Lines carrying a hop start with the mtr hop column, e.g. "  3.|-- 10.0.0.1"
HOP_LINE_PATTERN = re.compile(r"^\s*\d+\.")

# Column layout of a report-mode hop line, after whitespace tokenization.
# Tested against mtr 0.8x-0.9x report output:
#   HOST: probe     Loss%   Snt   Last   Avg  Best  Wrst StDev
#     1.|-- 10.0.0.1   0.0%     3    0.4   0.5   0.4   0.6   0.1
MTR_REPORT_COLUMNS = (
    "index",
    "address",
    "loss_percent",
    "sent",
    "last",
    "avg",
    "best",
    "worst",
    "stddev",
)

_FLOAT_COLUMNS = ("last", "avg", "best", "worst", "stddev")


def _to_float(value: str, field: str, line: str) -> float:
    try:
        return float(value)
    except ValueError:
        raise ReportParseError(f"Error parsing {field} field {value!r} in line {line!r}") from None


def parse_hop_line(line: str, hop: int) -> HopRecord:
    """Parse one hop line into a HopRecord numbered ``hop``.

    Args:
        line: A line already known to match HOP_LINE_PATTERN
        hop: Hop number to assign (the index printed by mtr is ignored)

    Returns:
        Parsed HopRecord

    Raises:
        ReportParseError: If the line is short or a numeric field is invalid
    """
    tokens = line.split()
    if len(tokens) < len(MTR_REPORT_COLUMNS):
        raise ReportParseError(
            f"Expected {len(MTR_REPORT_COLUMNS)} columns, got {len(tokens)} in line {line!r}"
        )

    fields = dict(zip(MTR_REPORT_COLUMNS, tokens))

    try:
        sent = int(fields["sent"])
    except ValueError:
        raise ReportParseError(
            f"Error parsing sent field {fields['sent']!r} in line {line!r}"
        ) from None

    loss = _to_float(fields["loss_percent"].replace("%", ""), "loss_percent", line)
    latencies = {name: _to_float(fields[name], name, line) for name in _FLOAT_COLUMNS}

    return HopRecord(
        hop=hop,
        ip=fields["address"],
        sent=sent,
        loss_percent=loss,
        **latencies,
    )


def parse_mtr_report(output: str | None) -> list[HopRecord]:
    """Parse raw mtr report output into hop records (pure function).

    Non-hop lines (header, blank lines) are skipped. Hops are numbered by a
    running counter so the result is always 1..N without gaps.

    Args:
        output: Raw stdout of ``mtr --report -n``

    Returns:
        List of HopRecord in measurement order

    Raises:
        ReportParseError: If any hop line is malformed; no partial result is returned
    """
    if not output:
        return []

    hops: list[HopRecord] = []
    for line in output.splitlines():
        if not HOP_LINE_PATTERN.match(line):
            continue
        hops.append(parse_hop_line(line, len(hops) + 1))

    logger.debug("Parsed mtr report: hops=%d", len(hops))
    return hops
