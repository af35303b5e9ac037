"""
Tests for KPI statistics.
"""
import sys
from dataclasses import asdict
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

from dashboard_core import statistics
from dashboard_core.statistics import (
    Stats,
    completion_metrics,
    compute_stats,
    financial_metrics,
    is_cancelled,
    is_completed,
    operator_metrics,
    performance_metrics,
    status_distribution,
    time_trends,
)
from factories import make_record


def make_test_data():
    return [
        make_record(status="Concluido", operator="A", total_cost="$100"),
        make_record(status="Cancelado", operator="A", total_cost=100),
        make_record(status="Pendiente", operator="B", total_cost=None),
    ]


class TestComputeStats:
    def test_end_to_end_scenario(self):
        stats = compute_stats(make_test_data())
        assert stats == Stats(
            total_services=3,
            completed_services=1,
            total_cost=200,
            average_cost=67,
            active_operators=2,
        )

    def test_empty_input_is_all_zero(self):
        assert asdict(compute_stats([])) == {
            "total_services": 0,
            "completed_services": 0,
            "total_cost": 0,
            "average_cost": 0,
            "active_operators": 0,
        }

    def test_non_list_input(self):
        assert compute_stats(None) == Stats()
        assert compute_stats("records") == Stats()

    def test_operators_trimmed_and_blank_ignored(self):
        data = [
            make_record(operator=" A "),
            make_record(operator="A"),
            make_record(operator="   "),
            make_record(operator=None),
        ]
        assert compute_stats(data).active_operators == 1

    def test_bad_costs_contribute_zero(self):
        data = [
            make_record(total_cost="N/A"),
            make_record(total_cost=float("nan")),
            make_record(total_cost="1,000"),
            make_record(total_cost=[5]),
        ]
        stats = compute_stats(data)
        assert stats.total_cost == 1000
        assert stats.average_cost == 250

    def test_total_cost_rounded(self):
        data = [make_record(total_cost="10.25"), make_record(total_cost="10.30")]
        assert compute_stats(data).total_cost == 21

    def test_huge_cost_keeps_kpis(self):
        data = [make_record(total_cost="1" * 40), make_record(total_cost=5, operator="A")]
        stats = compute_stats(data)
        assert stats.total_services == 2
        assert stats.active_operators == 1
        assert stats.total_cost == pytest.approx(float("1" * 40))

    def test_unexpected_failure_returns_zeroed(self, monkeypatch):
        def boom(records):
            raise RuntimeError("boom")

        monkeypatch.setattr(statistics, "_cost_sum", boom)
        assert compute_stats(make_test_data()) == Stats()


def test_status_predicates():
    assert is_completed("CONCLUÍDO")
    assert is_completed("servicio concluido")
    assert is_completed("Completed")
    assert not is_completed("Pendiente")
    assert not is_completed(None)
    assert is_cancelled("cancelado por cliente")
    assert not is_cancelled("Concluido")


def test_financial_metrics():
    data = make_test_data() + [make_record(total_cost="$2,500.60")]
    result = financial_metrics(data)
    assert result["total_cost"] == 2701
    assert result["min_cost"] == 100
    assert result["max_cost"] == 2501
    assert result["valid_cost_entries"] == 3
    assert result["total_services"] == 4
    assert financial_metrics([])["average_cost"] == 0


def test_operator_metrics():
    result = operator_metrics(make_test_data())
    assert result["active_operators"] == 2
    assert result["distribution"] == {"A": 2, "B": 1}
    assert result["top_operators"][0] == {
        "operator": "A",
        "services": 2,
        "cost_total": 200,
        "average_per_service": 100,
    }


def test_completion_metrics():
    result = completion_metrics(make_test_data())
    assert result["completed_services"] == 1
    assert result["cancelled_services"] == 1
    assert result["completion_rate"] == pytest.approx(33.33)
    assert completion_metrics([])["completion_rate"] == 0.0


def test_status_distribution():
    data = make_test_data() + [make_record(status="Concluido", total_cost=50), make_record(status=None)]
    rows = status_distribution(data)
    assert rows[0] == {"status": "Concluido", "count": 2, "cost_total": 150, "share_pct": 40.0}
    assert [r["status"] for r in rows] == ["Concluido", "Cancelado", "Pendiente"]


def test_time_trends():
    data = [
        make_record("2024-01-01T10:00:00"),  # Monday
        make_record("2024-01-03T10:00:00"),  # Wednesday
        make_record("2024-02-05T10:00:00"),  # Monday
        make_record(None),
    ]
    result = time_trends(data)
    assert result["total_with_dates"] == 3
    assert result["monthly_distribution"] == {"2024-01": 2, "2024-02": 1}
    assert result["weekday_distribution"] == {"Monday": 2, "Wednesday": 1}
    assert result["date_range"]["days"] == 35
    assert time_trends([])["date_range"] is None


def test_performance_metrics_bundle():
    data = make_test_data() + [make_record("2024-01-01T10:00:00")]
    result = performance_metrics(data)
    assert result["stats"]["total_services"] == 4
    assert result["data_quality"] == {
        "total_records": 4,
        "records_with_cost": 2,
        "records_with_operator": 3,
        "records_with_status": 3,
        "records_with_date": 1,
    }


def test_huge_cost_in_breakdowns():
    data = [make_record(total_cost="1" * 40, operator="A", status="Concluido")]
    assert financial_metrics(data)["max_cost"] == pytest.approx(float("1" * 40))
    assert operator_metrics(data)["active_operators"] == 1
    assert status_distribution(data)[0]["cost_total"] == pytest.approx(float("1" * 40))
