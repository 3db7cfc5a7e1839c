"""RoundData: One decoded ``latestRoundData()`` answer from a price feed.

The raw on-chain integers are kept as-is. ``price`` scales ``answer`` by the
feed's decimals when they are known.

.. code-block:: python

    >>> rd = RoundData("ETH", 7, 312345000000, 1000, 2000, 7, decimals=8)
    >>> rd.price
    Decimal('3123.45000000')
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal


@dataclass(frozen=True)
class RoundData:
    """Latest round reported by an aggregator contract.

    :ivar symbol: Symbol of the feed that produced this round.
    :ivar round_id: Aggregator round id (uint80).
    :ivar answer: Raw answer (int256), not scaled by decimals.
    :ivar started_at: Unix timestamp when the round started (uint256).
    :ivar updated_at: Unix timestamp of the last update (uint256).
    :ivar answered_in_round: Round in which the answer was computed (uint80).
    :ivar decimals: Feed decimals, or None if not fetched.
    """

    symbol: str
    round_id: int
    answer: int
    started_at: int
    updated_at: int
    answered_in_round: int
    decimals: int | None = None

    @property
    def price(self) -> Decimal | None:
        """Answer scaled by the feed decimals, or None if decimals are unknown."""
        if self.decimals is None:
            return None
        return Decimal(self.answer).scaleb(-self.decimals)

    def with_decimals(self, decimals: int | None) -> RoundData:
        """Return a copy carrying the given decimals."""
        return RoundData(
            symbol=self.symbol,
            round_id=self.round_id,
            answer=self.answer,
            started_at=self.started_at,
            updated_at=self.updated_at,
            answered_in_round=self.answered_in_round,
            decimals=decimals,
        )
