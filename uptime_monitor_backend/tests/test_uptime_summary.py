from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.api.schemas.uptime import StatusEvent
from src.api.services.uptime_engine import compute_summary

T0 = datetime(2024, 1, 1, tzinfo=timezone.utc)
WINDOW = (T0, T0 + timedelta(hours=4))


def _ev(instance_id: str, offset: timedelta, action: str, infra_type: str = "postgres_cluster", status: str = "") -> StatusEvent:
    return StatusEvent(
        instance_id=instance_id,
        user_id="user-1",
        type=infra_type,
        action=action,
        status=status,
        timestamp=T0 + offset,
    )


def test_summary_mixes_time_weighted_type_average_with_plain_mean():
    events = [
        _ev("a", timedelta(0), "started", "postgres_cluster"),
        _ev("b", timedelta(0), "started", "nginx_cluster"),
        _ev("a", timedelta(hours=3), "stopped", "postgres_cluster"),
    ]
    summary = compute_summary(events, *WINDOW)

    assert summary.total_instances == 2
    assert summary.by_type["postgres_cluster"].average_uptime == pytest.approx(75.0)
    assert summary.by_type["nginx_cluster"].average_uptime == pytest.approx(100.0)
    assert summary.average_uptime_percent == pytest.approx(87.5)

    pg = summary.by_type["postgres_cluster"]
    assert pg.count == 1
    assert pg.active_count == 0
    assert pg.total_uptime_seconds == 3 * 3600
    assert pg.total_downtime_seconds == 3600
    assert summary.by_type["nginx_cluster"].active_count == 1


def test_type_average_is_weighted_by_time_across_instances():
    events = [
        _ev("a", timedelta(0), "started"),
        _ev("a", timedelta(hours=1), "stopped"),
        _ev("b", timedelta(0), "started"),
        _ev("c", timedelta(hours=2), "started"),
    ]
    summary = compute_summary(events, *WINDOW)
    pg = summary.by_type["postgres_cluster"]

    assert pg.count == 3
    assert pg.total_uptime_seconds == (1 + 4 + 2) * 3600
    assert pg.total_downtime_seconds == (3 + 0 + 2) * 3600
    assert pg.average_uptime == pytest.approx(7 / 12 * 100)
    assert pg.active_count == 2


def test_empty_events_give_empty_summary():
    summary = compute_summary([], *WINDOW)

    assert summary.total_instances == 0
    assert summary.average_uptime_percent == 0.0
    assert summary.by_type == {}
    assert summary.top_performers == []
    assert summary.worst_performers == []
    assert summary.infrastructures == []


def test_rankings_are_capped_and_ties_break_on_instance_id():
    events = []
    # a..e start 30 minutes apart (100% down to 50%); x and y tie with a at 100%.
    for i, name in enumerate(["a", "b", "c", "d", "e"]):
        events.append(_ev(name, timedelta(minutes=30 * i), "started"))
    events.append(_ev("y", timedelta(0), "started"))
    events.append(_ev("x", timedelta(0), "started"))

    summary = compute_summary(events, *WINDOW)

    assert summary.total_instances == 7
    assert len(summary.top_performers) == 5
    assert len(summary.worst_performers) == 5
    assert [r.instance_id for r in summary.top_performers] == ["a", "x", "y", "b", "c"]
    assert [r.instance_id for r in summary.worst_performers] == ["e", "d", "c", "b", "a"]
    assert [r.instance_id for r in summary.infrastructures] == ["a", "x", "y", "b", "c", "d", "e"]


def test_ranking_limit_can_be_lowered():
    events = [_ev(name, timedelta(0), "started") for name in ("a", "b", "c")]
    summary = compute_summary(events, *WINDOW, limit=2)

    assert [r.instance_id for r in summary.top_performers] == ["a", "b"]
    assert [r.instance_id for r in summary.worst_performers] == ["a", "b"]
    assert len(summary.infrastructures) == 3


def test_instance_without_type_is_grouped_as_unknown():
    events = [_ev("a", timedelta(0), "started", infra_type="")]
    summary = compute_summary(events, *WINDOW)

    assert list(summary.by_type) == ["unknown"]
    assert summary.by_type["unknown"].count == 1


def test_type_key_uses_last_reported_type():
    events = [
        _ev("a", timedelta(0), "started", infra_type="dind"),
        _ev("a", timedelta(hours=1), "healthy", infra_type=""),
        _ev("a", timedelta(hours=2), "healthy", infra_type="clickhouse"),
    ]
    summary = compute_summary(events, *WINDOW)

    assert list(summary.by_type) == ["clickhouse"]
    # The per-instance result keeps the type of its earliest event.
    assert summary.infrastructures[0].infrastructure_type == "dind"


def test_active_count_only_counts_running_and_healthy():
    events = [
        _ev("a", timedelta(0), "x", status="active"),
        _ev("b", timedelta(0), "x", status="healthy"),
        _ev("c", timedelta(0), "started"),
    ]
    summary = compute_summary(events, *WINDOW)
    pg = summary.by_type["postgres_cluster"]

    # "active" is up-like but not counted as active; "started" maps to "running".
    assert pg.active_count == 2
    assert pg.average_uptime == pytest.approx(100.0)


def test_summary_period_label():
    summary = compute_summary([], T0, T0 + timedelta(days=3))
    assert summary.period == "7d"

    summary = compute_summary([], T0, T0 + timedelta(days=90))
    assert summary.period == "custom"
