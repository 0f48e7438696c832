"""Unit tests for BackoffPolicy and BackoffCursor.

Covers the retry cap, exponential growth, and the wall-clock cumulative
budget (including time spent outside the sleeps themselves).
"""

import pytest
from pydantic import ValidationError

from jobmon.core.backoff import BackoffPolicy


def drain(cursor, limit=100):
    """Collect durations until exhaustion (bounded to catch runaway cursors)."""
    durations = []
    for _ in range(limit):
        duration = cursor.next_backoff()
        if duration is None:
            return durations
        durations.append(duration)
    raise AssertionError("cursor never exhausted")


class TestRetryCap:

    @pytest.mark.parametrize("max_retries", [0, 1, 4, 11])
    def test_yields_at_most_max_retries(self, clock, max_retries):
        cursor = BackoffPolicy(initial_interval=1.0, max_retries=max_retries).backoff(clock=clock)

        assert len(drain(cursor)) == max_retries

    def test_zero_retries_fails_fast(self, clock):
        cursor = BackoffPolicy(max_retries=0).backoff(clock=clock)

        assert cursor.next_backoff() is None

    def test_stays_exhausted(self, clock):
        cursor = BackoffPolicy(initial_interval=1.0, max_retries=1).backoff(clock=clock)
        drain(cursor)

        assert cursor.next_backoff() is None
        assert cursor.retries == 1

    def test_intervals_grow_exponentially(self, clock):
        cursor = BackoffPolicy(initial_interval=2.0, exponent=1.5, max_retries=4).backoff(clock=clock)

        assert drain(cursor) == [2.0, 3.0, 4.5, 6.75]

    def test_interval_capped_by_max_interval(self, clock):
        policy = BackoffPolicy(initial_interval=1.0, exponent=2.0, max_retries=4, max_interval=3.0)

        assert drain(policy.backoff(clock=clock)) == [1.0, 2.0, 3.0, 3.0]

    def test_reset_restarts_sequence(self, clock):
        cursor = BackoffPolicy(initial_interval=1.0, exponent=2.0, max_retries=2).backoff(clock=clock)
        drain(cursor)

        cursor.reset()

        assert cursor.next_backoff() == 1.0


class TestCumulativeBudget:

    def test_last_wait_truncated_to_remaining_budget(self, clock):
        policy = BackoffPolicy(
            initial_interval=1.0, exponent=2.0, max_retries=10, max_cumulative_backoff=5.0
        )
        cursor = policy.backoff(clock=clock)

        durations = []
        while (duration := cursor.next_backoff()) is not None:
            durations.append(duration)
            clock.advance(duration)

        assert durations == [1.0, 2.0, 2.0]
        assert clock.now == 5.0

    def test_time_outside_sleeps_counts_against_budget(self, clock):
        policy = BackoffPolicy(
            initial_interval=1.0, exponent=1.0, max_retries=10, max_cumulative_backoff=5.0
        )
        cursor = policy.backoff(clock=clock)

        clock.advance(4.5)  # e.g. slow requests between attempts
        assert cursor.next_backoff() == 0.5

        clock.advance(0.5)
        assert cursor.next_backoff() is None

    def test_exhausted_immediately_once_budget_spent(self, clock):
        policy = BackoffPolicy(initial_interval=1.0, max_retries=10, max_cumulative_backoff=3.0)
        cursor = policy.backoff(clock=clock)

        clock.advance(3.0)

        assert cursor.next_backoff() is None
        assert cursor.retries == 0
        assert cursor.remaining() == 0.0

    def test_elapsed_tracked_from_cursor_creation(self, clock):
        clock.advance(100.0)
        policy = BackoffPolicy(initial_interval=1.0, max_retries=10, max_cumulative_backoff=3.0)

        cursor = policy.backoff(clock=clock)

        assert cursor.elapsed() == 0.0
        assert cursor.next_backoff() == 1.0

    def test_reset_restarts_clock(self, clock):
        policy = BackoffPolicy(initial_interval=1.0, max_retries=10, max_cumulative_backoff=2.0)
        cursor = policy.backoff(clock=clock)
        clock.advance(2.0)
        assert cursor.next_backoff() is None

        cursor.reset()

        assert cursor.next_backoff() == 1.0

    def test_unbounded_budget_has_no_remaining(self, clock):
        cursor = BackoffPolicy().backoff(clock=clock)

        assert cursor.remaining() is None


class TestPolicyValidation:

    def test_rejects_non_positive_interval(self):
        with pytest.raises(ValidationError):
            BackoffPolicy(initial_interval=0)

    def test_rejects_exponent_below_one(self):
        with pytest.raises(ValidationError):
            BackoffPolicy(exponent=0.5)

    def test_rejects_negative_retries(self):
        with pytest.raises(ValidationError):
            BackoffPolicy(max_retries=-1)

    def test_builder_validates(self):
        with pytest.raises(ValidationError):
            BackoffPolicy().with_max_cumulative_backoff(0)

    def test_builders_return_copies(self):
        policy = BackoffPolicy(initial_interval=2.0, max_retries=11)

        fail_fast = policy.with_max_retries(0)
        bounded = policy.with_max_cumulative_backoff(30.0)

        assert policy.max_retries == 11
        assert policy.max_cumulative_backoff is None
        assert fail_fast.max_retries == 0
        assert fail_fast.initial_interval == 2.0
        assert bounded.max_cumulative_backoff == 30.0

    def test_policy_is_frozen(self):
        policy = BackoffPolicy()

        with pytest.raises(ValidationError):
            policy.max_retries = 3

    def test_rejects_unknown_fields(self):
        with pytest.raises(ValidationError):
            BackoffPolicy(jitter=0.5)


def test_large_exponent_stays_at_max_interval(clock):
    policy = BackoffPolicy(initial_interval=1.0, exponent=10.0, max_retries=1000, max_interval=60.0)

    durations = drain(policy.backoff(clock=clock), limit=1001)

    assert len(durations) == 1000
    assert durations[:3] == [1.0, 10.0, 60.0]
    assert durations[-1] == 60.0
