"""Unit tests for AggregatorCodec."""

import pytest
from eth_abi import encode
from web3 import Web3

from pricefeed.src.AggregatorCodec import (
    DECIMALS_SIGNATURE,
    LATEST_ROUND_DATA_SIGNATURE,
    ROUND_DATA_SIZE,
    ROUND_DATA_TYPES,
    decode_decimals,
    decode_round_data,
    encode_call,
)
from pricefeed.src.errors import DecodeError, MalformedResponse, TooShort


def encode_round(round_id, answer, started_at, updated_at, answered_in_round) -> bytes:
    """ABI-encode a latestRoundData() return tuple."""
    return encode(
        ROUND_DATA_TYPES, [round_id, answer, started_at, updated_at, answered_in_round]
    )


class TestEncodeCall:
    """Test selector calldata encoding."""

    def test_latest_round_data_selector(self) -> None:
        """latestRoundData() has the well-known selector 0xfeaf968c."""
        assert encode_call(LATEST_ROUND_DATA_SIGNATURE) == bytes.fromhex("feaf968c")

    def test_decimals_selector(self) -> None:
        """decimals() has the well-known selector 0x313ce567."""
        assert encode_call(DECIMALS_SIGNATURE) == bytes.fromhex("313ce567")

    @pytest.mark.parametrize(
        "signature",
        ["latestRoundData()", "decimals()", "description()", "getRoundData(uint80)"],
    )
    def test_always_four_bytes(self, signature: str) -> None:
        """Calldata is exactly the 4-byte selector."""
        calldata = encode_call(signature)
        assert isinstance(calldata, bytes)
        assert len(calldata) == 4

    def test_deterministic(self) -> None:
        """Same signature should produce same bytes every call."""
        assert encode_call("version()") == encode_call("version()")

    def test_matches_keccak_prefix(self) -> None:
        """Selector is the first four bytes of keccak256(signature)."""
        expected = Web3.keccak(text="description()")[:4]
        assert encode_call("description()") == bytes(expected)

    @pytest.mark.parametrize("signature", ["", "latestRoundData", "latest RoundData()", "()"])
    def test_invalid_signature(self, signature: str) -> None:
        """Non-canonical signatures should raise ValueError."""
        with pytest.raises(ValueError, match="Invalid function signature"):
            encode_call(signature)


class TestDecodeRoundData:
    """Test latestRoundData() return decoding."""

    def test_crafted_response(self) -> None:
        """Decode (7, 123456, 1000, 2000, 7) with the symbol attached."""
        data = encode_round(7, 123456, 1000, 2000, 7)
        assert len(data) == 160

        round_data = decode_round_data(data, "ETH")

        assert round_data.symbol == "ETH"
        assert round_data.round_id == 7
        assert round_data.answer == 123456
        assert round_data.started_at == 1000
        assert round_data.updated_at == 2000
        assert round_data.answered_in_round == 7
        assert round_data.decimals is None

    def test_negative_answer(self) -> None:
        """int256 answers keep their sign."""
        round_data = decode_round_data(encode_round(1, -42, 0, 0, 1), "X")
        assert round_data.answer == -42

    def test_max_values(self) -> None:
        """Field maxima survive decoding."""
        data = encode_round(2**80 - 1, 2**255 - 1, 2**256 - 1, 2**256 - 1, 2**80 - 1)
        round_data = decode_round_data(data, "MAX")
        assert round_data.round_id == 2**80 - 1
        assert round_data.answer == 2**255 - 1
        assert round_data.started_at == 2**256 - 1
        assert round_data.answered_in_round == 2**80 - 1

    def test_real_round_id(self) -> None:
        """Phase-packed round ids (phase << 64 | round) fit uint80."""
        round_id = (2 << 64) | 12345
        round_data = decode_round_data(encode_round(round_id, 1, 2, 3, round_id), "ETH")
        assert round_data.round_id == round_id

    def test_trailing_bytes_ignored(self) -> None:
        """Bytes past the five slots do not affect the result."""
        data = encode_round(7, 123456, 1000, 2000, 7) + b"\xff" * 32
        assert decode_round_data(data, "ETH").answer == 123456

    @pytest.mark.parametrize("length", [0, 1, 4, 32, 128, 159])
    def test_too_short(self, length: int) -> None:
        """Anything shorter than 160 bytes fails with TooShort."""
        data = encode_round(7, 123456, 1000, 2000, 7)[:length]
        with pytest.raises(TooShort) as exc_info:
            decode_round_data(data, "ETH")
        assert exc_info.value.expected == ROUND_DATA_SIZE
        assert exc_info.value.actual == length

    def test_too_short_is_decode_error(self) -> None:
        """TooShort belongs to the DecodeError family."""
        with pytest.raises(DecodeError):
            decode_round_data(b"", "ETH")

    def test_uint80_overflow_is_malformed(self) -> None:
        """A roundId slot with bits above 80 is rejected."""
        data = encode(["uint256"] * 5, [2**80, 1, 2, 3, 4])
        with pytest.raises(MalformedResponse):
            decode_round_data(data, "ETH")


class TestDecodeDecimals:
    """Test decimals() return decoding."""

    def test_decimals(self) -> None:
        """Decode a uint8 decimals value."""
        assert decode_decimals(encode(["uint8"], [8])) == 8

    def test_decimals_too_short(self) -> None:
        """Fewer than 32 bytes fails with TooShort."""
        with pytest.raises(TooShort):
            decode_decimals(b"\x08")

    def test_decimals_overflow(self) -> None:
        """Values above 255 are malformed for uint8."""
        with pytest.raises(MalformedResponse):
            decode_decimals(encode(["uint256"], [256]))
