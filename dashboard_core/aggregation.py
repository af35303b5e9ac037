"""Chart data aggregation.

`aggregate` turns a filtered list of records into the tables behind every
dashboard chart: services per period (day or month), per operator, status,
operational unit, client and hour of contact. It never raises; on failure the
caller gets `empty_bundle()`.
"""

from __future__ import annotations

import datetime as dt
import logging
import math
from collections import Counter
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Iterator, Optional, Sequence, Tuple

from dashboard_core.filters import FilterSpec, normalize_filters
from dashboard_core.parsing import parse_contact_hour, parse_cost, round_half_up
from dashboard_core.records import ServiceRecord


logger = logging.getLogger(__name__)

# Widest range (inclusive days) still drawn as one bar per day.
DAY_GRANULARITY_MAX_DAYS = 31
TOP_N = 10
UNKNOWN_KEY = "Unknown"
HOUR_KEYS = tuple(f"{h:02d}:00" for h in range(24))

TABLES = ("by_period", "by_operator", "by_status", "by_unit", "by_client", "by_hour")
PERIOD_TITLES = {"day": "Services per day", "month": "Services per month"}


@dataclass(frozen=True)
class GroupCount:
    key: str
    count: int


@dataclass(frozen=True)
class PeriodCount:
    key: str
    count: int
    cost_total: float = 0.0


def _zero_hours() -> Tuple[GroupCount, ...]:
    return tuple(GroupCount(key, 0) for key in HOUR_KEYS)


@dataclass(frozen=True)
class ChartDataBundle:
    by_period: Tuple[PeriodCount, ...] = ()
    by_operator: Tuple[GroupCount, ...] = ()
    by_status: Tuple[GroupCount, ...] = ()
    by_unit: Tuple[GroupCount, ...] = ()
    by_client: Tuple[GroupCount, ...] = ()
    by_hour: Tuple[GroupCount, ...] = field(default_factory=_zero_hours)
    period_label: str = "month"

    @property
    def period_title(self) -> str:
        return PERIOD_TITLES.get(self.period_label, PERIOD_TITLES["month"])

    def as_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {name: [asdict(row) for row in getattr(self, name)] for name in TABLES}
        payload["period_label"] = self.period_label
        payload["period_title"] = self.period_title
        return payload


def empty_bundle() -> ChartDataBundle:
    return ChartDataBundle()


def determine_granularity(filters: object) -> str:
    spec = normalize_filters(filters)
    if not spec.has_date_range:
        return "month"
    days = (spec.date_to - spec.date_from).days + 1
    return "day" if 1 <= days <= DAY_GRANULARITY_MAX_DAYS else "month"


def _group_key(value: Optional[str]) -> str:
    if value is None or value == "":
        return UNKNOWN_KEY
    return value


def _period_key(stamp: dt.datetime, granularity: str) -> str:
    if granularity == "day":
        return f"{stamp.year:04d}-{stamp.month:02d}-{stamp.day:02d}"
    return f"{stamp.year:04d}-{stamp.month:02d}"


def _days(start: dt.date, end: dt.date) -> Iterator[dt.date]:
    current = start
    while current <= end:
        yield current
        current += dt.timedelta(days=1)


def _ranked(counts: Counter, limit: Optional[int] = None) -> Tuple[GroupCount, ...]:
    # sorted() is stable and Counter keeps insertion order, so ties stay in first-seen order.
    rows = sorted(counts.items(), key=lambda kv: -kv[1])
    if limit is not None:
        rows = rows[:limit]
    return tuple(GroupCount(key, int(count)) for key, count in rows)


def _period_table(counts: Counter, costs: Dict[str, float], granularity: str, spec: FilterSpec) -> Tuple[PeriodCount, ...]:
    if granularity == "day" and spec.has_date_range:
        keys = [d.isoformat() for d in _days(spec.date_from, spec.date_to)]
    else:
        keys = sorted(counts)
    return tuple(
        PeriodCount(key, int(counts.get(key, 0)), round(costs.get(key, 0.0), 2))
        for key in keys
    )


def _hour_table(counts: Counter) -> Tuple[GroupCount, ...]:
    return tuple(GroupCount(key, int(counts.get(key, 0))) for key in HOUR_KEYS)


def aggregate(records: object, filters: object = None) -> ChartDataBundle:
    if not isinstance(records, (list, tuple)):
        logger.warning("aggregate expected a list of records, got %s", type(records).__name__)
        return empty_bundle()

    try:
        spec = normalize_filters(filters)
        granularity = determine_granularity(spec)

        periods: Counter = Counter()
        period_costs: Dict[str, float] = {}
        operators: Counter = Counter()
        statuses: Counter = Counter()
        units: Counter = Counter()
        clients: Counter = Counter()
        hours: Counter = Counter()

        for idx, record in enumerate(records):
            if not isinstance(record, ServiceRecord):
                logger.warning("Skipping non-record item at position %d", idx)
                continue

            for name, counter, value in (
                ("operator", operators, record.operator),
                ("status", statuses, record.status),
                ("unit", units, record.operational_unit),
                ("client", clients, record.client),
            ):
                try:
                    counter[_group_key(value)] += 1
                except Exception:
                    logger.warning("Skipping %s grouping for record %d", name, idx, exc_info=True)

            try:
                if record.registered_at is not None:
                    key = _period_key(record.registered_at, granularity)
                    periods[key] += 1
                    cost = parse_cost(record.total_cost)
                    if math.isfinite(cost):
                        period_costs[key] = period_costs.get(key, 0.0) + cost
            except Exception:
                logger.warning("Skipping period grouping for record %d", idx, exc_info=True)

            try:
                hour = parse_contact_hour(record.tc)
                if hour is not None:
                    hours[HOUR_KEYS[hour]] += 1
            except Exception:
                logger.warning("Skipping hour grouping for record %d", idx, exc_info=True)

        bundle = ChartDataBundle(
            by_period=_period_table(periods, period_costs, granularity, spec),
            by_operator=_ranked(operators, TOP_N),
            by_status=_ranked(statuses),
            by_unit=_ranked(units),
            by_client=_ranked(clients, TOP_N),
            by_hour=_hour_table(hours),
            period_label=granularity,
        )
        logger.debug("Aggregated %d records by %s into %d periods", len(records), granularity, len(bundle.by_period))
        return bundle
    except Exception:
        logger.exception("Chart aggregation failed; returning empty bundle")
        return empty_bundle()


def _mean(values: Sequence[int]) -> float:
    return sum(values) / len(values) if values else 0.0


def period_trend(by_period: Sequence[PeriodCount]) -> Dict[str, Any]:
    """Compare the mean of the first half of the series with the second half."""
    counts = [item.count for item in by_period or ()]
    if len(counts) < 2:
        return {"trend": "insufficient_data", "average_change": 0, "growth_pct": 0.0}

    split = math.ceil(len(counts) / 2)
    first = _mean(counts[:split])
    second = _mean(counts[split:])
    change = second - first
    growth = (change / first) * 100 if first > 0 else 0.0

    trend = "stable"
    if growth > 10:
        trend = "strong_growth"
    elif growth > 5:
        trend = "moderate_growth"
    elif growth < -10:
        trend = "strong_decline"
    elif growth < -5:
        trend = "moderate_decline"

    return {
        "trend": trend,
        "average_change": int(round_half_up(change)),
        "growth_pct": round(growth, 2),
    }


def hourly_pattern(by_hour: Sequence[GroupCount]) -> Dict[str, Any]:
    hours = list(by_hour or ())
    if not hours:
        return {"peak_hours": [], "off_peak_hours": [], "hourly_average": 0, "total_services": 0}

    ordered = sorted(hours, key=lambda item: -item.count)
    total = sum(item.count for item in hours)
    return {
        "peak_hours": [asdict(item) for item in ordered[:3]],
        "off_peak_hours": [asdict(item) for item in reversed(ordered[-3:])],
        "hourly_average": int(round_half_up(total / len(hours))),
        "total_services": total,
    }
