import asyncio

import pytest

from threadpilot_ai.capability_core.runtime.deadline import (
    Deadline,
    current_deadline,
    deadline_scope,
    request_timeout,
)


class _FakeClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self):
        return self.now


def test_remaining_counts_down_and_floors_at_zero():
    clock = _FakeClock()
    deadline = Deadline(2.0, clock=clock)

    clock.now += 0.5
    assert deadline.remaining() == pytest.approx(1.5)
    assert not deadline.expired

    clock.now += 5
    assert deadline.remaining() == 0.0
    assert deadline.expired


@pytest.mark.parametrize("seconds", [0, -1])
def test_budget_must_be_positive(seconds):
    with pytest.raises(ValueError):
        Deadline(seconds)


def test_scope_sets_and_resets():
    assert current_deadline() is None
    deadline = Deadline(1.0)

    with deadline_scope(deadline):
        assert current_deadline() is deadline
    assert current_deadline() is None


def test_request_timeout_without_deadline_uses_default():
    assert request_timeout(3.0) == 3.0


def test_request_timeout_is_capped_by_remaining_budget():
    clock = _FakeClock()
    deadline = Deadline(2.0, clock=clock)

    with deadline_scope(deadline):
        assert request_timeout(5.0) == pytest.approx(2.0)
        assert request_timeout(0.5) == 0.5
        clock.now += 10
        assert 0 < request_timeout(5.0) < 0.01


async def test_deadline_is_visible_inside_spawned_tasks():
    async def read_deadline():
        return current_deadline()

    deadline = Deadline(1.0)
    with deadline_scope(deadline):
        task = asyncio.create_task(read_deadline())

    assert await task is deadline
