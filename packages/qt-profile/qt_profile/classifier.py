"""Threshold classification into GREAT / GOOD / POOR / CRITICAL bands.

Each metric family is a fixed rule table evaluated top-down; the first rule
that matches decides the band and the last rule always matches. Bands are
computed on demand from raw values and never stored.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Optional

from .summary import SummaryMetrics

MB = 1e6
GB = 1e9

# Lower edge of the POOR execution-share band. Intentionally separate from
# summary.HIGH_EXECUTION_TIME_PCT, which flags individual operators.
POOR_EXECUTION_SHARE_PCT = 15
CRITICAL_EXECUTION_SHARE_PCT = 30

CRITICAL_SINGLE_SPILL_BYTES = 100 * GB
POOR_TOTAL_SPILL_BYTES = 10 * GB
CRITICAL_AVG_PRUNING_PCT = 30
POOR_AVG_PRUNING_PCT = 60
POOR_AVG_CACHE_PCT = 50


class Band(str, Enum):
    GREAT = "GREAT"
    GOOD = "GOOD"
    POOR = "POOR"
    CRITICAL = "CRITICAL"


@dataclass(frozen=True)
class BandRule:
    """One row of a rule table."""
    band: Band
    description: str
    matches: Callable[..., bool]


def _between(value: Optional[float], low: float, high: float) -> bool:
    """Half-open range check; an unmeasured value never matches."""
    return value is not None and low <= value < high


def _always(*_: Any) -> bool:
    return True


def first_match(rules: tuple[BandRule, ...], *values: Any) -> Band:
    for rule in rules:
        if rule.matches(*values):
            return rule.band
    return rules[-1].band


EXECUTION_TIME_RULES = (
    BandRule(Band.GREAT, "<5% of total execution time", lambda pct: pct < 5),
    BandRule(Band.GOOD, "5-15% of total execution time", lambda pct: pct < POOR_EXECUTION_SHARE_PCT),
    BandRule(Band.POOR, "15-30% of total execution time", lambda pct: pct <= CRITICAL_EXECUTION_SHARE_PCT),
    BandRule(Band.CRITICAL, ">30% of total execution time", _always),
)

# Cache is optional here: when unmeasured only pruning decides.
SCAN_EFFICIENCY_RULES = (
    BandRule(
        Band.GREAT,
        "Pruning >=80% AND cache hit >=90%",
        lambda pruning, cache: pruning >= 80 and (cache is None or cache >= 90),
    ),
    BandRule(
        Band.GOOD,
        "Pruning 60-80% OR cache hit 70-90%",
        lambda pruning, cache: _between(pruning, 60, 80) or _between(cache, 70, 90),
    ),
    BandRule(
        Band.POOR,
        "Pruning 30-60% OR cache hit 40-70%",
        lambda pruning, cache: _between(pruning, 30, 60) or _between(cache, 40, 70),
    ),
    BandRule(Band.CRITICAL, "Pruning <30% OR cache hit <40%", _always),
)

JOIN_MULTIPLICATION_RULES = (
    BandRule(Band.GREAT, "Row multiplication <1.2x", lambda factor: factor < 1.2),
    BandRule(Band.GOOD, "Row multiplication 1.2-1.5x", lambda factor: factor <= 1.5),
    BandRule(Band.POOR, "Row multiplication 1.5-2.0x", lambda factor: factor <= 2.0),
    BandRule(Band.CRITICAL, "Row multiplication >2.0x (join explosion)", _always),
)

IO_RULES = (
    BandRule(
        Band.GREAT,
        "<100 MB scanned with >90% cache hit",
        lambda scanned, cache: scanned < 100 * MB and (cache is None or cache > 90),
    ),
    BandRule(
        Band.GOOD,
        "100 MB - 1 GB scanned OR 70-90% cache hit",
        lambda scanned, cache: _between(scanned, 100 * MB, GB) or (cache is not None and 70 <= cache <= 90),
    ),
    BandRule(
        Band.POOR,
        "1-10 GB scanned OR 40-70% cache hit",
        lambda scanned, cache: _between(scanned, GB, 10 * GB) or _between(cache, 40, 70),
    ),
    BandRule(Band.CRITICAL, ">10 GB scanned OR <40% cache hit", _always),
)

SPILLING_RULES = (
    BandRule(Band.GREAT, "No spilling", lambda local, remote: local + remote == 0),
    BandRule(Band.GOOD, "Local spilling only, <100 MB", lambda local, remote: remote == 0 and local < 100 * MB),
    BandRule(Band.POOR, "Local spilling 100 MB - 1 GB", lambda local, remote: remote == 0 and local <= GB),
    BandRule(Band.CRITICAL, "Remote spilling OR >1 GB spilled", _always),
)

EXTERNAL_FUNCTION_RULES = (
    BandRule(
        Band.GREAT,
        "<10ms average latency, 100% success",
        lambda latency, success: latency < 10 and success >= 100,
    ),
    BandRule(
        Band.GOOD,
        "10-50ms average latency, >95% success",
        lambda latency, success: latency <= 50 and success > 95,
    ),
    BandRule(
        Band.POOR,
        "50-200ms average latency, 90-95% success",
        lambda latency, success: latency <= 200 and success >= 90,
    ),
    BandRule(Band.CRITICAL, ">200ms average latency OR <90% success", _always),
)

OVERALL_RULES = (
    BandRule(
        Band.CRITICAL,
        "Any high-execution-time operator, a single spill >100 GB, or average pruning <30%",
        lambda s: bool(s.high_execution_operators)
        or s.max_operator_spill > CRITICAL_SINGLE_SPILL_BYTES
        or (s.pruning_samples > 0 and s.average_pruning_efficiency < CRITICAL_AVG_PRUNING_PCT),
    ),
    BandRule(
        Band.POOR,
        "An operator at 15-30% of time, >=10 GB spilled in total, average pruning 30-60%, or average cache <50%",
        lambda s: POOR_EXECUTION_SHARE_PCT <= s.max_execution_percentage <= CRITICAL_EXECUTION_SHARE_PCT
        or s.total_bytes_spilled >= POOR_TOTAL_SPILL_BYTES
        or (s.pruning_samples > 0 and s.average_pruning_efficiency < POOR_AVG_PRUNING_PCT)
        or (s.cache_hit_samples > 0 and s.average_cache_hit_rate < POOR_AVG_CACHE_PCT),
    ),
    BandRule(Band.GOOD, "Every metric beats the POOR thresholds", lambda s: s.has_issues),
    BandRule(Band.GREAT, "No performance issues detected", _always),
)

RULE_TABLES: dict[str, tuple[str, tuple[BandRule, ...]]] = {
    "execution_time": ("Execution time share", EXECUTION_TIME_RULES),
    "scan_efficiency": ("Table scan efficiency", SCAN_EFFICIENCY_RULES),
    "join_multiplication": ("Join performance", JOIN_MULTIPLICATION_RULES),
    "io_volume": ("I/O operations", IO_RULES),
    "spilling": ("Spilling", SPILLING_RULES),
    "external_function": ("External functions", EXTERNAL_FUNCTION_RULES),
    "overall": ("Overall query", OVERALL_RULES),
}


def classify_execution_time(pct: float) -> Band:
    return first_match(EXECUTION_TIME_RULES, pct)


def classify_scan_efficiency(pruning_pct: float, cache_hit_pct: Optional[float] = None) -> Band:
    return first_match(SCAN_EFFICIENCY_RULES, pruning_pct, cache_hit_pct)


def classify_join_multiplication(factor: float) -> Band:
    return first_match(JOIN_MULTIPLICATION_RULES, factor)


def classify_io(bytes_scanned: float, cache_hit_pct: Optional[float] = None) -> Band:
    return first_match(IO_RULES, bytes_scanned, cache_hit_pct)


def classify_spilling(local_bytes: float, remote_bytes: float = 0) -> Band:
    return first_match(SPILLING_RULES, local_bytes or 0, remote_bytes or 0)


def classify_external_function(average_latency_ms: Optional[float], success_rate_pct: float) -> Band:
    """Unknown latency is treated as zero; success rate still applies."""
    return first_match(EXTERNAL_FUNCTION_RULES, average_latency_ms or 0, success_rate_pct)


def classify_query(summary: SummaryMetrics) -> Band:
    """Overall band, evaluated CRITICAL first down to GREAT."""
    return first_match(OVERALL_RULES, summary)


@dataclass(frozen=True)
class Classification:
    """Overall band plus each family that had data to classify."""
    overall: Band
    families: dict[str, Band] = field(default_factory=dict)

    def to_dict(self) -> dict[str, str]:
        out = {"overall": self.overall.value}
        out.update({name: band.value for name, band in self.families.items()})
        return out


def classify_summary(summary: SummaryMetrics) -> Classification:
    """Classify every family from query-level values."""
    cache = summary.average_cache_hit_rate if summary.cache_hit_samples else None
    families: dict[str, Band] = {}

    if summary.max_execution_percentage > 0:
        families["execution_time"] = classify_execution_time(summary.max_execution_percentage)
    if summary.pruning_samples:
        families["scan_efficiency"] = classify_scan_efficiency(summary.average_pruning_efficiency, cache)
    if summary.max_join_multiplication is not None:
        families["join_multiplication"] = classify_join_multiplication(summary.max_join_multiplication)
    families["io_volume"] = classify_io(summary.total_bytes_scanned, cache)
    families["spilling"] = classify_spilling(summary.bytes_spilled_local, summary.bytes_spilled_remote)
    if summary.external_function_calls:
        families["external_function"] = classify_external_function(
            summary.external_function_latency_ms,
            summary.external_function_success_rate,
        )

    return Classification(overall=classify_query(summary), families=families)
