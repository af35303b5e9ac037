"""
Tests for Vega-Lite chart specs built from a bundle.
"""
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from dashboard_core.aggregation import aggregate, empty_bundle
from dashboard_core.charts import bundle_charts
from factories import make_record


def test_bundle_charts_cover_non_empty_tables():
    data = [
        make_record("2024-01-01T10:00:00", operator="A", status="Concluido", client="C", unit="U", tc="10:00"),
        make_record("2024-01-02T11:00:00", operator="B", status="Pendiente", client="C", unit="U", tc="11:00"),
    ]
    charts = bundle_charts(aggregate(data, {"date_from": "2024-01-01", "date_to": "2024-01-03"}))

    assert set(charts) == {"by_period", "by_operator", "by_status", "by_unit", "by_client", "by_hour"}
    period = charts["by_period"]
    mark = period["mark"]
    assert (mark["type"] if isinstance(mark, dict) else mark) == "bar"
    assert period["encoding"]["y"]["field"] == "count"
    assert period["title"] == "Services per day"


def test_empty_bundle_has_no_charts():
    assert bundle_charts(empty_bundle()) == {}
