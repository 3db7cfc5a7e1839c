"""Unit tests for RoundData."""

from dataclasses import FrozenInstanceError
from decimal import Decimal

import pytest

from pricefeed.src.RoundData import RoundData


class TestRoundData:
    """Test RoundData value semantics and price scaling."""

    def test_price_scaled_by_decimals(self) -> None:
        """Price is the answer scaled by decimals."""
        rd = RoundData("ETH", 7, 312345000000, 1000, 2000, 7, decimals=8)
        assert rd.price == Decimal("3123.45")

    def test_price_without_decimals(self) -> None:
        """Price is None when decimals are unknown."""
        rd = RoundData("ETH", 7, 123456, 1000, 2000, 7)
        assert rd.price is None

    def test_negative_price(self) -> None:
        """Negative answers scale to negative prices."""
        rd = RoundData("X", 1, -150, 0, 0, 1, decimals=2)
        assert rd.price == Decimal("-1.50")

    def test_zero_decimals(self) -> None:
        """Zero decimals returns the answer unchanged."""
        rd = RoundData("X", 1, 42, 0, 0, 1, decimals=0)
        assert rd.price == Decimal(42)

    def test_with_decimals(self) -> None:
        """with_decimals returns a copy and leaves the original intact."""
        rd = RoundData("ETH", 7, 123456, 1000, 2000, 7)
        scaled = rd.with_decimals(3)

        assert scaled.decimals == 3
        assert scaled.price == Decimal("123.456")
        assert rd.decimals is None
        assert scaled.symbol == rd.symbol
        assert scaled.round_id == rd.round_id

    def test_immutable(self) -> None:
        """Rounds are values and cannot be modified."""
        rd = RoundData("ETH", 7, 123456, 1000, 2000, 7)
        with pytest.raises(FrozenInstanceError):
            rd.answer = 0  # type: ignore[misc]

    def test_equality(self) -> None:
        """Rounds with the same fields are equal."""
        assert RoundData("ETH", 1, 2, 3, 4, 5) == RoundData("ETH", 1, 2, 3, 4, 5)
        assert RoundData("ETH", 1, 2, 3, 4, 5) != RoundData("BTC", 1, 2, 3, 4, 5)
