"""Tests for funding, voting and refund derivations."""

from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

import pytest

from estateshare.services import calculations


def test_token_price_and_amount() -> None:
    assert calculations.token_price(250000, 1000) == 250.0
    assert calculations.investment_amount(4, 250.0) == 1000.0
    with pytest.raises(ValueError):
        calculations.token_price(1000, 0)


def test_available_tokens_never_negative() -> None:
    assert calculations.available_tokens(1000, 600) == 400
    assert calculations.available_tokens(1000, 1200) == 0


def test_funding_goal_tolerates_rounding() -> None:
    """Sums of float token prices may fall a cent short of the valuation."""
    price = calculations.token_price(1000, 3)
    raised = sum(calculations.investment_amount(1, price) for _ in range(3))

    assert calculations.funding_goal_met(raised, 1000)
    assert calculations.funding_goal_met(999.995, 1000)
    assert not calculations.funding_goal_met(999.0, 1000)
    assert calculations.funding_progress(250, 1000) == 25.0
    assert calculations.funding_progress(10, 0) == 0.0


def test_tally_and_result() -> None:
    net, voted = calculations.tally([("yes", 600), ("no", 400)])
    assert (net, voted) == (200, 1000)
    assert calculations.voting_result(net, completed=True) == "yes"
    assert calculations.voting_result(net, completed=False) is None
    assert calculations.voting_result(-5, completed=True) == "no"
    assert calculations.voting_result(0, completed=True) == "tie"
    assert calculations.tally([]) == (0, 0)


def test_refund_window() -> None:
    now = datetime(2024, 6, 10, tzinfo=timezone.utc)
    recent = now - timedelta(days=3)
    stale = now - timedelta(days=8)

    assert calculations.is_refundable(status="completed", transaction_type="investment", created_at=recent, now=now)
    assert not calculations.is_refundable(status="completed", transaction_type="investment", created_at=stale, now=now)
    assert not calculations.is_refundable(status="pending", transaction_type="investment", created_at=recent, now=now)
    assert not calculations.is_refundable(status="completed", transaction_type="dividend", created_at=recent, now=now)
    assert calculations.is_refundable(
        status="completed", transaction_type="investment", created_at=stale, now=now, window_days=10
    )


@pytest.mark.parametrize(
    ("date_of_birth", "today", "adult"),
    [
        (date(2006, 6, 10), date(2024, 6, 10), True),
        (date(2006, 6, 11), date(2024, 6, 10), False),
        (date(2004, 2, 29), date(2022, 2, 28), False),
        (date(2004, 2, 29), date(2022, 3, 1), True),
    ],
)
def test_is_adult(date_of_birth: date, today: date, adult: bool) -> None:
    assert calculations.is_adult(date_of_birth, today) is adult
