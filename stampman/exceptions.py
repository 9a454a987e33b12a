"""Stampman exceptions."""


class StampmanError(Exception):
    """
    Structured business error for stamp, card, reward and ticket operations.

    Every failure the core reports to its caller is one of these: the code
    identifies the failure, ``data`` carries the values that explain it and
    ``category`` groups codes the way an API layer maps them to responses.

    Usage:
        try:
            StampService.redeem_stamp("CLI-001", "482913")
        except StampmanError as e:
            if e.category == "expired":
                show_expired()
            payload = e.as_dict()
    """

    _default_messages = {
        "BUSINESS_NOT_FOUND": "Business not found",
        "CLIENT_NOT_FOUND": "Client not found",
        "STAMP_NOT_FOUND": "Stamp code not found",
        "REWARD_NOT_FOUND": "Reward not found",
        "TICKET_NOT_FOUND": "Redemption ticket not found",
        "CARD_NOT_FOUND": "Client has no card for this business",
        "STAMP_ALREADY_USED": "Stamp code was already used",
        "STAMP_ALREADY_REDEEMED": "You already redeemed this stamp code",
        "STAMP_EXPIRED": "Stamp code has expired",
        "TICKET_EXPIRED": "Redemption ticket has expired",
        "INSUFFICIENT_POINTS": "Insufficient points for redemption",
        "REWARD_OUT_OF_STOCK": "Reward is out of stock",
        "REWARD_EXPIRED": "Reward has expired",
        "CODE_SPACE_EXHAUSTED": "Could not generate a unique code",
        "CODE_CONFLICT": "Code collided with a concurrent insert",
        "INVALID_TRANSITION": "Status transition not allowed",
        "INVALID_STAMP_VALUE": "Stamp value must be between 1 and 10",
        "INVALID_STAMP_KIND": "Unknown stamp kind",
        "INVALID_POINTS": "Points must be positive",
        "INVALID_REWARD": "Invalid reward data",
        "INVALID_TTL": "Time to live must be positive",
        "INVALID_AMOUNT": "Sale amount must be a non-negative number",
    }

    _categories = {
        "BUSINESS_NOT_FOUND": "not_found",
        "CLIENT_NOT_FOUND": "not_found",
        "STAMP_NOT_FOUND": "not_found",
        "REWARD_NOT_FOUND": "not_found",
        "TICKET_NOT_FOUND": "not_found",
        "CARD_NOT_FOUND": "no_card",
        "STAMP_ALREADY_USED": "already_used",
        "STAMP_ALREADY_REDEEMED": "already_redeemed",
        "STAMP_EXPIRED": "expired",
        "TICKET_EXPIRED": "expired",
        "INSUFFICIENT_POINTS": "insufficient_points",
        "REWARD_OUT_OF_STOCK": "out_of_stock",
        "REWARD_EXPIRED": "reward_expired",
        "CODE_SPACE_EXHAUSTED": "code_space_exhausted",
        "CODE_CONFLICT": "conflict",
    }

    def __init__(self, code: str, /, message: str | None = None, **data):
        self.code = code
        self.message = message or self._default_messages.get(code, code)
        self.data = data
        super().__init__(f"[{code}] {self.message}")

    @property
    def category(self) -> str:
        """Error family (not_found, expired, ...). Unlisted codes are "invalid"."""
        return self._categories.get(self.code, "invalid")

    def as_dict(self) -> dict:
        return {
            "code": self.code,
            "category": self.category,
            "message": self.message,
            "data": self.data,
        }


class LedgerCorruption(RuntimeError):
    """
    A stored balance broke its invariant (total != available + used, or
    available < 0).

    Never raised for caller mistakes. It means the data is wrong, and the
    operation must stop instead of repairing it.
    """
