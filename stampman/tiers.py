"""Sale amount to stamp value thresholding."""

from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol


class TierLike(Protocol):
    min_amount: Decimal
    stamp_value: int


def resolve_tier(tiers: Iterable[TierLike], amount) -> TierLike | None:
    """
    Pick the tier for a sale amount.

    The winner is the tier with the highest ``min_amount`` that is still
    <= amount. An amount equal to a threshold reaches that tier, and between
    tiers sharing the same threshold the one with the larger stamp value wins.

    Returns None when the amount is below every threshold.
    """
    amount = Decimal(str(amount))
    best = None
    for tier in tiers:
        if tier.min_amount > amount:
            continue
        if best is None or (tier.min_amount, tier.stamp_value) >= (
            best.min_amount,
            best.stamp_value,
        ):
            best = tier
    return best
