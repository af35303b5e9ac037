from __future__ import annotations

import datetime as dt
import logging
import math
from collections import Counter
from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional, Sequence

from dashboard_core.parsing import parse_cost, round_half_up
from dashboard_core.records import ServiceRecord


logger = logging.getLogger(__name__)

# Status text is inconsistent in the source sheets ("Concluido", "CONCLUÍDO",
# "Completed"), so categories are substring matches, not equality.
COMPLETED_PATTERNS = ("conclu", "complet")
CANCELLED_PATTERNS = ("cancel",)

WEEKDAY_NAMES = ("Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday", "Sunday")
TOP_OPERATORS = 10


@dataclass(frozen=True)
class Stats:
    total_services: int = 0
    completed_services: int = 0
    total_cost: int = 0
    average_cost: int = 0
    active_operators: int = 0


def _status_matches(status: object, patterns: Sequence[str]) -> bool:
    if not isinstance(status, str) or not status:
        return False
    lowered = status.casefold()
    return any(p in lowered for p in patterns)


def is_completed(status: object) -> bool:
    return _status_matches(status, COMPLETED_PATTERNS)


def is_cancelled(status: object) -> bool:
    return _status_matches(status, CANCELLED_PATTERNS)


def _records(data: object) -> List[ServiceRecord]:
    if not isinstance(data, (list, tuple)):
        if data is not None:
            logger.warning("Expected a list of records, got %s", type(data).__name__)
        return []
    return [r for r in data if isinstance(r, ServiceRecord)]


def _cost_sum(records: Sequence[ServiceRecord]) -> float:
    total = 0.0
    for r in records:
        cost = parse_cost(r.total_cost)
        if math.isfinite(cost):
            total += cost
    return total if math.isfinite(total) else 0.0


def _operator_name(value: object) -> Optional[str]:
    if isinstance(value, str) and value.strip():
        return value
    return None


def _as_int(value: object) -> int:
    rounded = round_half_up(value)
    return int(rounded) if rounded is not None else 0


def compute_stats(data: object) -> Stats:
    """KPI cards: totals, completed count, cost total/average, active operators."""
    try:
        records = _records(data)
        total = len(records)
        if not total:
            return Stats()

        cost_sum = _cost_sum(records)
        operators = {r.operator.strip() for r in records if _operator_name(r.operator)}
        return Stats(
            total_services=total,
            completed_services=sum(1 for r in records if is_completed(r.status)),
            total_cost=_as_int(cost_sum),
            average_cost=_as_int(cost_sum / total),
            active_operators=len(operators),
        )
    except Exception:
        logger.exception("compute_stats failed; returning zeroed stats")
        return Stats()


def financial_metrics(data: object) -> Dict[str, Any]:
    records = _records(data)
    cost_sum = _cost_sum(records)
    positive = [c for c in (parse_cost(r.total_cost) for r in records) if math.isfinite(c) and c > 0]
    return {
        "total_cost": _as_int(cost_sum),
        "average_cost": _as_int(cost_sum / len(records)) if records else 0,
        "min_cost": _as_int(min(positive)) if positive else 0,
        "max_cost": _as_int(max(positive)) if positive else 0,
        "total_services": len(records),
        "valid_cost_entries": len(positive),
    }


def operator_metrics(data: object) -> Dict[str, Any]:
    records = _records(data)
    services: Counter = Counter()
    costs: Dict[str, float] = {}
    for r in records:
        name = _operator_name(r.operator)
        if name is None:
            continue
        services[name] += 1
        costs[name] = costs.get(name, 0.0) + parse_cost(r.total_cost)

    top = []
    for name, count in sorted(services.items(), key=lambda kv: -kv[1])[:TOP_OPERATORS]:
        cost = costs.get(name, 0.0)
        top.append(
            {
                "operator": name,
                "services": count,
                "cost_total": _as_int(cost),
                "average_per_service": _as_int(cost / count) if count else 0,
            }
        )

    return {
        "active_operators": len({name.strip() for name in services}),
        "distribution": dict(services),
        "top_operators": top,
    }


def _pct(part: int, whole: int) -> float:
    return round(part / whole * 100, 2) if whole else 0.0


def completion_metrics(data: object) -> Dict[str, Any]:
    records = _records(data)
    total = len(records)
    completed = sum(1 for r in records if is_completed(r.status))
    cancelled = sum(1 for r in records if is_cancelled(r.status))
    return {
        "total_services": total,
        "completed_services": completed,
        "cancelled_services": cancelled,
        "completion_rate": _pct(completed, total),
        "cancellation_rate": _pct(cancelled, total),
    }


def status_distribution(data: object) -> List[Dict[str, Any]]:
    records = _records(data)
    counts: Counter = Counter()
    costs: Dict[str, float] = {}
    for r in records:
        if not r.status:
            continue
        counts[r.status] += 1
        costs[r.status] = costs.get(r.status, 0.0) + parse_cost(r.total_cost)

    return [
        {
            "status": status,
            "count": count,
            "cost_total": _as_int(costs.get(status, 0.0)),
            "share_pct": _pct(count, len(records)),
        }
        for status, count in sorted(counts.items(), key=lambda kv: -kv[1])
    ]


def time_trends(data: object) -> Dict[str, Any]:
    dated = [r.registered_at for r in _records(data) if isinstance(r.registered_at, dt.datetime)]
    if not dated:
        return {"total_with_dates": 0, "date_range": None, "monthly_distribution": {}, "weekday_distribution": {}}

    monthly: Counter = Counter()
    weekday: Counter = Counter()
    for stamp in dated:
        monthly[stamp.strftime("%Y-%m")] += 1
        weekday[WEEKDAY_NAMES[stamp.weekday()]] += 1

    try:
        first, last = min(dated), max(dated)
    except TypeError:
        # naive and tz-aware stamps in one batch; fall back to wall-clock values
        naive = [s.replace(tzinfo=None) for s in dated]
        first, last = min(naive), max(naive)

    return {
        "total_with_dates": len(dated),
        "date_range": {
            "min": first.isoformat(),
            "max": last.isoformat(),
            "days": math.ceil((last - first).total_seconds() / 86400),
        },
        "monthly_distribution": dict(sorted(monthly.items())),
        "weekday_distribution": {name: weekday[name] for name in WEEKDAY_NAMES if weekday[name]},
    }


def performance_metrics(data: object) -> Dict[str, Any]:
    records = _records(data)
    financial = financial_metrics(records)
    return {
        "stats": asdict(compute_stats(records)),
        "financial": financial,
        "operators": operator_metrics(records),
        "completion": completion_metrics(records),
        "statuses": status_distribution(records),
        "time": time_trends(records),
        "data_quality": {
            "total_records": len(records),
            "records_with_cost": financial["valid_cost_entries"],
            "records_with_operator": sum(1 for r in records if r.operator),
            "records_with_status": sum(1 for r in records if r.status),
            "records_with_date": sum(1 for r in records if r.registered_at is not None),
        },
    }
