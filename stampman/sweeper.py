"""
Expiry sweeper.

Flips stamps and tickets that outlived their expiry. Sweeping only keeps the
stored status fresh: redeem_stamp() and deliver_redemption() check expiry on
their own, so the sweep cadence never decides whether a code is accepted.

Scheduling belongs to the host, e.g. a crontab line running every minute:
    * * * * * python manage.py stampman_sweep
"""

import logging
from dataclasses import dataclass

from stampman.services.stamps import StampService
from stampman.services.tickets import TicketService

logger = logging.getLogger(__name__)


@dataclass
class SweepResult:
    stamps_expired: int = 0
    tickets_expired: int = 0

    @property
    def total(self) -> int:
        return self.stamps_expired + self.tickets_expired


def sweep() -> SweepResult:
    """Run expire_stale() on stamps, then on tickets."""
    result = SweepResult(
        stamps_expired=StampService.expire_stale(),
        tickets_expired=TicketService.expire_stale(),
    )
    logger.info(
        "Sweep done: %d stamps, %d tickets expired",
        result.stamps_expired,
        result.tickets_expired,
    )
    return result
