"""Tests for tab-switch window aggregation."""

from __future__ import annotations

import pytest

from focus_companion.services.focus_engine.activity_window import (
    ActivityWindowAggregator,
    ResettingSwitchCounter,
    TabStats,
    enforce_window_order,
)


def _ordered(stats: TabStats) -> bool:
    return stats.count10s <= stats.count30s <= stats.count60s


@pytest.fixture
def aggregator():
    return ActivityWindowAggregator()


class TestRecordSwitch:
    def test_switch_counts_in_every_window(self, aggregator):
        aggregator.record_switch(100.0)
        stats = aggregator.snapshot(100.0)
        assert (stats.count10s, stats.count30s, stats.count60s) == (1, 1, 1)

    def test_switches_age_out_of_smaller_windows_first(self, aggregator):
        aggregator.record_switch(100.0)
        aggregator.record_switch(125.0)
        aggregator.record_switch(138.0)

        stats = aggregator.snapshot(140.0)
        assert stats.count10s == 1   # 138
        assert stats.count30s == 2   # 125, 138
        assert stats.count60s == 3
        assert stats.rate_per_minute == 3.0

    def test_switch_older_than_a_minute_is_dropped(self, aggregator):
        aggregator.record_switch(100.0)
        assert aggregator.snapshot(161.0).count60s == 0

    def test_snapshot_does_not_mutate(self, aggregator):
        aggregator.record_switch(100.0)
        aggregator.snapshot(500.0)
        assert aggregator.snapshot(100.0).count60s == 1

    def test_snapshot_is_a_copy(self, aggregator):
        first = aggregator.snapshot(0.0)
        aggregator.record_switch(0.0)
        assert first.count60s == 0


class TestMerge:
    def test_merge_nested_counts(self, aggregator):
        merged = aggregator.merge({"counts": {"last10": 2, "last30": 4, "last60": 7}, "ratePerMin": 6.5})
        assert merged == TabStats(count10s=2, count30s=4, count60s=7, rate_per_minute=6.5)

    def test_merge_raises_smaller_windows_never_lowers_larger(self, aggregator):
        merged = aggregator.merge({"counts": {"last10": 5, "last30": 2, "last60": 1}})
        assert merged.count10s == 5
        assert merged.count30s == 5
        assert merged.count60s == 5

    def test_missing_window_keeps_last_known_value(self, aggregator):
        aggregator.merge({"counts": {"last10": 1, "last30": 3, "last60": 6}})
        merged = aggregator.merge({"countLast10s": 2})
        assert merged.count10s == 2
        assert merged.count30s == 3
        assert merged.count60s == 6

    def test_invalid_values_fall_back(self, aggregator):
        aggregator.merge({"counts": {"last60": 4}})
        merged = aggregator.merge({"counts": {"last60": "lots", "last10": float("nan")}})
        assert merged.count60s == 4
        assert merged.count10s == 0

    def test_negative_values_floor_at_zero(self, aggregator):
        merged = aggregator.merge({"countLast60s": -3})
        assert merged.count60s == 0

    def test_last60s_alias(self, aggregator):
        assert aggregator.merge({"counts": {"last60s": 9}}).count60s == 9

    def test_snapshot_combines_local_and_external(self, aggregator):
        aggregator.merge({"counts": {"last60": 4}})
        aggregator.record_switch(10.0)
        aggregator.record_switch(11.0)
        stats = aggregator.snapshot(12.0)
        assert stats.count10s == 2
        assert stats.count60s == 4

    def test_order_holds_across_mixed_sequences(self, aggregator):
        now = 0.0
        payloads = [
            {"countLast10s": 3},
            {"counts": {"last30": 1}},
            {"counts": {"last60": 2, "last10": 0}},
            {},
            {"ratePerMin": 12},
        ]
        for payload in payloads:
            for _ in range(2):
                now += 7.0
                aggregator.record_switch(now)
                assert _ordered(aggregator.snapshot(now))
            assert _ordered(aggregator.merge(payload))
            assert _ordered(aggregator.snapshot(now + 45.0))


def test_enforce_window_order():
    stats = enforce_window_order(TabStats(count10s=3, count30s=1, count60s=2))
    assert (stats.count10s, stats.count30s, stats.count60s) == (3, 3, 3)


class TestResettingSwitchCounter:
    def test_counts_within_interval(self):
        counter = ResettingSwitchCounter()
        counter.increment(0.0)
        counter.increment(3.0)
        assert counter.count(9.0) == 2

    def test_hard_reset_after_interval(self):
        counter = ResettingSwitchCounter()
        counter.increment(0.0)
        counter.increment(1.0)
        assert counter.increment(10.5) == 1

    def test_payload_feeds_merge(self):
        counter = ResettingSwitchCounter()
        counter.increment(0.0)
        counter.increment(1.0)
        aggregator = ActivityWindowAggregator()
        merged = aggregator.merge(counter.as_payload(2.0))
        assert merged.count10s == 2
        assert merged.count60s == 2
