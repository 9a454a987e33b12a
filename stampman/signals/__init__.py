"""
Stampman signals: public event API.

All signals are sent after the surrounding transaction commits, so receivers
(emails, QR rendering, push notifications) never run while card or stock rows
are locked.

Emitted signals:
- stamp_issued: StampService.issue_stamp() / issue_for_sale()
- stamp_redeemed: StampService.redeem_stamp()
- reward_redeemed: TicketService.redeem_reward()
- redemption_delivered: TicketService.deliver_redemption()
- redemption_cancelled: TicketService.cancel_redemption()
"""

from django.dispatch import Signal

# Stamp signals
stamp_issued = Signal()  # sender=Stamp, stamp=Stamp
stamp_redeemed = Signal()  # sender=Stamp, stamp=Stamp, card=LoyaltyCard, points=int

# Ticket signals
reward_redeemed = Signal()  # sender=RewardRedemption, ticket=RewardRedemption
redemption_delivered = Signal()  # sender=RewardRedemption, ticket=RewardRedemption
redemption_cancelled = Signal()  # sender=RewardRedemption, ticket=RewardRedemption, refunded=bool
