from __future__ import annotations

import datetime as dt
import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

from dashboard_core.parsing import coerce_date
from dashboard_core.records import ServiceRecord


logger = logging.getLogger(__name__)

DIMENSIONS = ("operator", "status", "client", "unit")
# Record attribute backing each filter dimension.
DIMENSION_FIELDS = {
    "operator": "operator",
    "status": "status",
    "client": "client",
    "unit": "operational_unit",
}
# camelCase keys sent by older frontends.
_DATE_ALIASES = {"date_from": "dateFrom", "date_to": "dateTo"}

WIDE_RANGE_WARNING_DAYS = 730


@dataclass(frozen=True)
class FilterSpec:
    operator: Tuple[str, ...] = ()
    status: Tuple[str, ...] = ()
    client: Tuple[str, ...] = ()
    unit: Tuple[str, ...] = ()
    date_from: Optional[dt.date] = None
    date_to: Optional[dt.date] = None

    @property
    def has_date_range(self) -> bool:
        return self.date_from is not None and self.date_to is not None

    def as_dict(self) -> Dict[str, Any]:
        return {
            "operator": list(self.operator),
            "status": list(self.status),
            "client": list(self.client),
            "unit": list(self.unit),
            "date_from": self.date_from.isoformat() if self.date_from else None,
            "date_to": self.date_to.isoformat() if self.date_to else None,
        }


@dataclass(frozen=True)
class FilterValidation:
    valid: bool = True
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


def default_filters() -> FilterSpec:
    return FilterSpec()


def _as_str_tuple(name: str, values: object) -> Tuple[str, ...]:
    if values is None:
        return ()
    if not isinstance(values, (list, tuple, set, frozenset)):
        logger.warning("Ignoring %s filter: expected a list, got %s", name, type(values).__name__)
        return ()
    out: List[str] = []
    for v in values:
        if isinstance(v, str) and v not in out:
            out.append(v)
    return tuple(out)


def _raw_date(raw: Mapping[str, Any], key: str) -> object:
    value = raw.get(key)
    if value is None:
        value = raw.get(_DATE_ALIASES[key])
    return value


def _as_date(name: str, value: object) -> Optional[dt.date]:
    if value is None or value == "":
        return None
    parsed = coerce_date(value)
    if parsed is None:
        logger.warning("Ignoring %s filter: %r is not a YYYY-MM-DD date", name, value)
    return parsed


def normalize_filters(raw: object) -> FilterSpec:
    """Build a FilterSpec from whatever the caller sent; bad fields mean no constraint."""
    if isinstance(raw, FilterSpec):
        return raw
    if raw is None:
        return FilterSpec()
    if not isinstance(raw, Mapping):
        logger.warning("Ignoring filters of type %s", type(raw).__name__)
        return FilterSpec()

    return FilterSpec(
        operator=_as_str_tuple("operator", raw.get("operator")),
        status=_as_str_tuple("status", raw.get("status")),
        client=_as_str_tuple("client", raw.get("client")),
        unit=_as_str_tuple("unit", raw.get("unit")),
        date_from=_as_date("date_from", _raw_date(raw, "date_from")),
        date_to=_as_date("date_to", _raw_date(raw, "date_to")),
    )


def _date_key(value: dt.date) -> Tuple[int, int, int]:
    return (value.year, value.month, value.day)


def _keep(record: ServiceRecord, spec: FilterSpec) -> bool:
    for dim in DIMENSIONS:
        accepted = getattr(spec, dim)
        if not accepted:
            continue
        value = getattr(record, DIMENSION_FIELDS[dim])
        if value is None or value not in accepted:
            return False

    if spec.date_from is None and spec.date_to is None:
        return True
    stamp = record.registered_at
    if stamp is None:
        return False
    # Compare (y, m, d) as stored so neither time-of-day nor tz offset moves a record across days.
    day = _date_key(stamp)
    if spec.date_from is not None and day < _date_key(spec.date_from):
        return False
    if spec.date_to is not None and day > _date_key(spec.date_to):
        return False
    return True


def apply_filters(records: object, filters: object = None) -> List[ServiceRecord]:
    if not isinstance(records, (list, tuple)):
        logger.warning("apply_filters expected a list of records, got %s", type(records).__name__)
        return []

    spec = normalize_filters(filters)
    out: List[ServiceRecord] = []
    for idx, record in enumerate(records):
        if not isinstance(record, ServiceRecord):
            logger.warning("Excluding non-record item at position %d", idx)
            continue
        try:
            if _keep(record, spec):
                out.append(record)
        except Exception:
            logger.warning("Excluding malformed record at position %d", idx, exc_info=True)
    return out


def _validate_date_text(label: str, value: object, errors: List[str]) -> Optional[dt.date]:
    if value is None or value == "":
        return None
    parsed = coerce_date(value)
    if parsed is None:
        errors.append(f"{label} must be a valid date in YYYY-MM-DD format")
    return parsed


def validate_filters(raw: object) -> FilterValidation:
    if isinstance(raw, FilterSpec):
        raw = raw.as_dict()
    if not isinstance(raw, Mapping):
        return FilterValidation(valid=False, errors=["filters must be an object"])

    errors: List[str] = []
    warnings: List[str] = []
    for dim in DIMENSIONS:
        value = raw.get(dim)
        if value is not None and not isinstance(value, (list, tuple)):
            errors.append(f"{dim} must be a list")

    start = _validate_date_text("date_from", _raw_date(raw, "date_from"), errors)
    end = _validate_date_text("date_to", _raw_date(raw, "date_to"), errors)
    if start is not None and end is not None:
        if start > end:
            errors.append("date_from must not be after date_to")
        span = abs((end - start).days)
        if span > WIDE_RANGE_WARNING_DAYS:
            warnings.append(f"Very wide date range: {span} days")

    return FilterValidation(valid=not errors, errors=errors, warnings=warnings)


def filter_impact(original: object, filtered: object) -> Dict[str, Any]:
    if not isinstance(original, (list, tuple)) or not isinstance(filtered, (list, tuple)):
        return {"original_records": 0, "filtered_records": 0, "removed_records": 0, "reduction_pct": 0.0}
    before = len(original)
    after = len(filtered)
    removed = before - after
    reduction = round(removed / before * 100, 2) if before else 0.0
    return {
        "original_records": before,
        "filtered_records": after,
        "removed_records": removed,
        "reduction_pct": reduction,
    }


def monthly_distribution(records: Iterable[ServiceRecord]) -> Dict[str, int]:
    counts: Counter = Counter()
    for r in records or []:
        stamp = getattr(r, "registered_at", None)
        if isinstance(stamp, dt.datetime):
            counts[stamp.strftime("%Y-%m")] += 1
    return dict(sorted(counts.items()))
