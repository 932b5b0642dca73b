"""Pure derivations used at the point of mutation."""

from __future__ import annotations

from datetime import date, datetime, timedelta
from typing import Iterable, Optional, Tuple

FUNDING_TOLERANCE = 0.01
ADULT_AGE = 18


def token_price(total_value: float, total_tokens: int) -> float:
    if total_tokens < 1:
        raise ValueError("total_tokens must be at least 1")
    return total_value / total_tokens


def investment_amount(tokens: int, price: float) -> float:
    return tokens * price


def available_tokens(total_tokens: int, tokens_sold: int) -> int:
    return max(total_tokens - tokens_sold, 0)


def funding_progress(current_amount: float, total_value: float) -> float:
    """Percentage of the funding goal raised so far."""

    if total_value <= 0:
        return 0.0
    return current_amount / total_value * 100


def funding_goal_met(current_amount: float, total_value: float) -> bool:
    return current_amount + FUNDING_TOLERANCE >= total_value


def tally(votes: Iterable[Tuple[str, int]]) -> Tuple[int, int]:
    """Return ``(total_votes, total_tokens_voted)`` for ``(choice, tokens)`` pairs.

    ``total_votes`` is yes-weight minus no-weight.
    """

    net = 0
    voted = 0
    for choice, tokens in votes:
        voted += tokens
        net += tokens if choice == "yes" else -tokens
    return net, voted


def voting_result(total_votes: int, completed: bool) -> Optional[str]:
    if not completed:
        return None
    if total_votes > 0:
        return "yes"
    if total_votes < 0:
        return "no"
    return "tie"


def is_refundable(
    *,
    status: str,
    transaction_type: str,
    created_at: datetime,
    now: datetime,
    window_days: int = 7,
) -> bool:
    return (
        status == "completed"
        and transaction_type == "investment"
        and now - created_at <= timedelta(days=window_days)
    )


def age_on(date_of_birth: date, today: date) -> int:
    years = today.year - date_of_birth.year
    if (today.month, today.day) < (date_of_birth.month, date_of_birth.day):
        years -= 1
    return years


def is_adult(date_of_birth: date, today: date) -> bool:
    return age_on(date_of_birth, today) >= ADULT_AGE
