"""Stampman services.

- StampService: issue, redeem, cancel and expire stamp codes
- CardService: per (client, business) balances
- RewardService: reward catalog
- TicketService: reward exchange tickets
"""

from stampman.services.cards import CardService, CardSummary
from stampman.services.lookups import PageResult
from stampman.services.rewards import RewardService
from stampman.services.stamps import StampRedemptionResult, StampService
from stampman.services.tickets import TicketService, TicketView

__all__ = [
    "CardService",
    "CardSummary",
    "PageResult",
    "RewardService",
    "StampRedemptionResult",
    "StampService",
    "TicketService",
    "TicketView",
]
