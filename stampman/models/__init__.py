"""Stampman models.

Reference records supplied by the host project:
- Business, Client

Ledger:
- StampTier: sale amount brackets per business
- Stamp, StampRedemption: issued codes and their redemption facts
- LoyaltyCard: per (client, business) balance
- Reward: catalog
- RewardRedemption: redemption tickets
"""

from stampman.models.business import Business
from stampman.models.client import Client
from stampman.models.tier import StampTier, PurchaseTier
from stampman.models.stamp import (
    LIVE_STAMP_STATUSES,
    Stamp,
    StampKind,
    StampRedemption,
    StampStatus,
)
from stampman.models.card import LoyaltyCard
from stampman.models.reward import Reward, RewardType
from stampman.models.ticket import RedemptionStatus, RewardRedemption

__all__ = [
    # Reference records
    "Business",
    "Client",
    # Stamps
    "StampTier",
    "PurchaseTier",
    "Stamp",
    "StampKind",
    "StampStatus",
    "StampRedemption",
    "LIVE_STAMP_STATUSES",
    # Cards
    "LoyaltyCard",
    # Rewards and tickets
    "Reward",
    "RewardType",
    "RewardRedemption",
    "RedemptionStatus",
]
