"""
Stampman Gates - Validation rules.

G1: StampTransition - Stamp status moves only active -> used|expired|cancelled
G2: TicketTransition - Ticket status moves only pending -> delivered|expired|cancelled
G3: RewardExchangeable - Reward is in stock and not expired
G4: SufficientBalance - Card has enough available points
G5: CardBalance - total == available + used and available >= 0 (fatal)
"""

from dataclasses import dataclass

from stampman.exceptions import LedgerCorruption, StampmanError
from stampman.models import RedemptionStatus, StampStatus


@dataclass
class GateResult:
    """Result of a gate check."""

    passed: bool
    gate_name: str
    message: str = ""


# =============================================================================
# Gates
# =============================================================================


class Gates:
    """Stampman validation gates."""

    # =========================================================================
    # G1: Stamp Transition
    # =========================================================================

    STAMP_TRANSITIONS: dict[str, set[str]] = {
        StampStatus.ACTIVE: {StampStatus.USED, StampStatus.EXPIRED, StampStatus.CANCELLED},
        StampStatus.USED: set(),
        StampStatus.EXPIRED: set(),
        StampStatus.CANCELLED: set(),
    }

    @classmethod
    def stamp_transition(cls, current: str, target: str) -> GateResult:
        """
        G1: Stamp status change must follow the lifecycle.

        Raises:
            StampmanError: INVALID_TRANSITION
        """
        if target not in cls.STAMP_TRANSITIONS.get(current, set()):
            raise StampmanError(
                "INVALID_TRANSITION",
                message=f"Stamp cannot go from '{current}' to '{target}'.",
                current=str(current),
                target=str(target),
            )
        return GateResult(True, "G1_StampTransition")

    @classmethod
    def check_stamp_transition(cls, current: str, target: str) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.stamp_transition(current, target)
            return True
        except StampmanError:
            return False

    # =========================================================================
    # G2: Ticket Transition
    # =========================================================================

    TICKET_TRANSITIONS: dict[str, set[str]] = {
        RedemptionStatus.PENDING: {
            RedemptionStatus.DELIVERED,
            RedemptionStatus.EXPIRED,
            RedemptionStatus.CANCELLED,
        },
        RedemptionStatus.DELIVERED: set(),
        RedemptionStatus.EXPIRED: set(),
        RedemptionStatus.CANCELLED: set(),
    }

    @classmethod
    def ticket_transition(cls, current: str, target: str) -> GateResult:
        """
        G2: Ticket status change must follow the lifecycle.

        Raises:
            StampmanError: INVALID_TRANSITION
        """
        if target not in cls.TICKET_TRANSITIONS.get(current, set()):
            raise StampmanError(
                "INVALID_TRANSITION",
                message=f"Ticket cannot go from '{current}' to '{target}'.",
                current=str(current),
                target=str(target),
            )
        return GateResult(True, "G2_TicketTransition")

    @classmethod
    def check_ticket_transition(cls, current: str, target: str) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.ticket_transition(current, target)
            return True
        except StampmanError:
            return False

    # =========================================================================
    # G3: Reward Exchangeable
    # =========================================================================

    @classmethod
    def reward_exchangeable(cls, reward, now=None) -> GateResult:
        """
        G3: Reward has stock left and has not passed its expiration date.

        Stock is checked first, so an expired reward with no stock reports
        REWARD_OUT_OF_STOCK.

        Raises:
            StampmanError: REWARD_OUT_OF_STOCK or REWARD_EXPIRED
        """
        if not reward.in_stock:
            raise StampmanError("REWARD_OUT_OF_STOCK", reward=str(reward.uuid))
        if reward.is_expired(now):
            raise StampmanError(
                "REWARD_EXPIRED",
                reward=str(reward.uuid),
                expiration_date=reward.expiration_date.isoformat(),
            )
        return GateResult(True, "G3_RewardExchangeable")

    @classmethod
    def check_reward_exchangeable(cls, reward, now=None) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.reward_exchangeable(reward, now)
            return True
        except StampmanError:
            return False

    # =========================================================================
    # G4: Sufficient Balance
    # =========================================================================

    @classmethod
    def sufficient_balance(cls, card, points: int) -> GateResult:
        """
        G4: Card has at least ``points`` available.

        Raises:
            StampmanError: INSUFFICIENT_POINTS
        """
        if card.available_stamps < points:
            raise StampmanError(
                "INSUFFICIENT_POINTS",
                message=(
                    f"You need {points} points for this reward. "
                    f"You have {card.available_stamps}."
                ),
                available=card.available_stamps,
                requested=points,
            )
        return GateResult(True, "G4_SufficientBalance")

    @classmethod
    def check_sufficient_balance(cls, card, points: int) -> bool:
        """Check without raising (returns bool)."""
        try:
            cls.sufficient_balance(card, points)
            return True
        except StampmanError:
            return False

    # =========================================================================
    # G5: Card Balance (fatal)
    # =========================================================================

    @classmethod
    def card_balance(cls, card) -> GateResult:
        """
        G5: Stored balance is consistent.

        A failure here is data corruption, not a caller error, so it raises
        LedgerCorruption instead of StampmanError.
        """
        if not card.is_balanced:
            raise LedgerCorruption(
                f"Card {card.uuid} is unbalanced: total={card.total_stamps} "
                f"available={card.available_stamps} used={card.used_stamps}"
            )
        return GateResult(True, "G5_CardBalance")
