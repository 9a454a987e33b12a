"""Tests for StampmanError."""

from stampman.exceptions import StampmanError


class TestStampmanError:
    def test_default_message(self):
        err = StampmanError("STAMP_EXPIRED", code="123456")
        assert err.message == "Stamp code has expired"
        assert str(err) == "[STAMP_EXPIRED] Stamp code has expired"
        assert err.data == {"code": "123456"}

    def test_custom_message(self):
        err = StampmanError("INVALID_REWARD", message="Reward name is required")
        assert str(err) == "[INVALID_REWARD] Reward name is required"

    def test_categories(self):
        assert StampmanError("CLIENT_NOT_FOUND").category == "not_found"
        assert StampmanError("CARD_NOT_FOUND").category == "no_card"
        assert StampmanError("TICKET_EXPIRED").category == "expired"
        assert StampmanError("CODE_CONFLICT").category == "conflict"
        assert StampmanError("INVALID_TRANSITION").category == "invalid"

    def test_as_dict(self):
        err = StampmanError("INSUFFICIENT_POINTS", available=3, requested=10)
        assert err.as_dict() == {
            "code": "INSUFFICIENT_POINTS",
            "category": "insufficient_points",
            "message": "Insufficient points for redemption",
            "data": {"available": 3, "requested": 10},
        }
