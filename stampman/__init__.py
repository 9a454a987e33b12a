"""
Django Stampman - Loyalty stamps, cards and rewards.

Usage:
    from stampman import StampService, TicketService, StampmanError

    stamp = StampService.issue_stamp("BIZ-001", value=2)
    result = StampService.redeem_stamp("CLI-001", stamp.code)
    ticket = TicketService.redeem_reward("BIZ-001", reward.uuid, "CLI-001")

    # Gates validation
    Gates.sufficient_balance(card, reward.point_cost)
"""

_SERVICES = {
    "StampService": "stampman.services.stamps",
    "CardService": "stampman.services.cards",
    "RewardService": "stampman.services.rewards",
    "TicketService": "stampman.services.tickets",
}


def __getattr__(name):
    if name in _SERVICES:
        from importlib import import_module

        return getattr(import_module(_SERVICES[name]), name)
    if name == "Gates":
        from stampman.gates import Gates

        return Gates
    if name == "GateResult":
        from stampman.gates import GateResult

        return GateResult
    if name == "StampmanError":
        from stampman.exceptions import StampmanError

        return StampmanError
    if name == "LedgerCorruption":
        from stampman.exceptions import LedgerCorruption

        return LedgerCorruption
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")


__all__ = [
    "StampService",
    "CardService",
    "RewardService",
    "TicketService",
    "Gates",
    "GateResult",
    "StampmanError",
    "LedgerCorruption",
]
__version__ = "0.1.0"
