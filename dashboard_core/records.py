from __future__ import annotations

import datetime as dt
import logging
from dataclasses import dataclass
from typing import Any, Iterable, List, Mapping, Optional

import pandas as pd

from dashboard_core.parsing import coerce_timestamp, parse_cost


logger = logging.getLogger(__name__)

EXPORT_COLUMNS = [
    "number",
    "registered_at",
    "assigned_at",
    "operator",
    "operational_unit",
    "account",
    "status",
    "client",
    "total_cost",
]


def _text_or_none(value: object) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    return value if isinstance(value, str) else str(value)


@dataclass(frozen=True)
class ServiceRecord:
    """One normalized service event, as handed over by the ingestion layer.

    `total_cost` and `tc` keep whatever the spreadsheet produced; read them
    through `parse_cost` / `parse_contact_hour`, never directly.
    """

    number: Any = None
    registered_at: Optional[dt.datetime] = None
    assigned_at: Optional[dt.datetime] = None
    operator: Optional[str] = None
    operational_unit: Optional[str] = None
    account: Optional[str] = None
    status: Optional[str] = None
    client: Optional[str] = None
    total_cost: Any = None
    tc: Any = None

    @classmethod
    def from_mapping(cls, raw: Mapping[str, Any]) -> "ServiceRecord":
        return cls(
            number=raw.get("number"),
            registered_at=coerce_timestamp(raw.get("registered_at")),
            assigned_at=coerce_timestamp(raw.get("assigned_at")),
            operator=_text_or_none(raw.get("operator")),
            operational_unit=_text_or_none(raw.get("operational_unit")),
            account=_text_or_none(raw.get("account")),
            status=_text_or_none(raw.get("status")),
            client=_text_or_none(raw.get("client")),
            total_cost=raw.get("total_cost"),
            tc=raw.get("tc"),
        )


def coerce_records(items: Optional[Iterable[object]]) -> List[ServiceRecord]:
    if not items:
        return []
    out: List[ServiceRecord] = []
    for idx, item in enumerate(items):
        if isinstance(item, ServiceRecord):
            out.append(item)
        elif isinstance(item, Mapping):
            out.append(ServiceRecord.from_mapping(item))
        else:
            logger.warning("Skipping record %d of unsupported type %s", idx, type(item).__name__)
    return out


def _date_text(value: Optional[dt.datetime]) -> Optional[str]:
    return value.strftime("%Y-%m-%d") if value is not None else None


def records_to_frame(records: Iterable[ServiceRecord]) -> pd.DataFrame:
    rows = [
        {
            "number": r.number,
            "registered_at": _date_text(r.registered_at),
            "assigned_at": _date_text(r.assigned_at),
            "operator": r.operator,
            "operational_unit": r.operational_unit,
            "account": r.account,
            "status": r.status,
            "client": r.client,
            "total_cost": parse_cost(r.total_cost),
        }
        for r in records
    ]
    return pd.DataFrame(rows, columns=EXPORT_COLUMNS)
