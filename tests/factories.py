"""Record factory shared by the test modules."""
import datetime as dt
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dashboard_core.records import ServiceRecord


def make_record(
    registered_at=None,
    *,
    operator=None,
    status=None,
    client=None,
    unit=None,
    total_cost=None,
    tc=None,
    number=None,
) -> ServiceRecord:
    if isinstance(registered_at, str):
        registered_at = dt.datetime.fromisoformat(registered_at)
    return ServiceRecord(
        number=number,
        registered_at=registered_at,
        operator=operator,
        operational_unit=unit,
        status=status,
        client=client,
        total_cost=total_cost,
        tc=tc,
    )
