import pytest

from hook_miner.models import (
    Cancelled,
    Found,
    InvalidMask,
    MiningProgress,
    MiningRequest,
    NotFound,
    result_status,
    result_to_dict,
)


class TestMiningRequest:
    """Test request construction"""

    def test_valid(self):
        request = MiningRequest(bytearray(20), bytes(32), 0x00C4, 10)
        assert isinstance(request.identity, bytes)
        assert request.max_iterations == 10

    def test_identity_width(self):
        with pytest.raises(ValueError, match="identity length 19"):
            MiningRequest(bytes(19), bytes(32), 0, 10)

    def test_fingerprint_width(self):
        with pytest.raises(ValueError, match="fingerprint length 31"):
            MiningRequest(bytes(20), bytes(31), 0, 10)

    def test_negative_bound(self):
        with pytest.raises(ValueError, match="max_iterations"):
            MiningRequest(bytes(20), bytes(32), 0, -1)

    def test_mask_is_not_validated_here(self):
        """Out-of-domain masks are a miner outcome, not a construction error"""
        request = MiningRequest(bytes(20), bytes(32), 0x4000, 10)
        assert request.target_mask == 0x4000

    def test_immutable(self):
        request = MiningRequest(bytes(20), bytes(32), 0, 10)
        with pytest.raises(AttributeError):
            request.max_iterations = 5


class TestResults:
    """Test result values"""

    def test_only_found_is_ok(self):
        assert Found(salt=1, address=0, iterations=2).ok
        assert not NotFound(iterations=5).ok
        assert not InvalidMask(target_mask=0x4000).ok
        assert not Cancelled(iterations=3).ok

    def test_invalid_mask_defaults_to_zero_iterations(self):
        assert InvalidMask(target_mask=0x4000).iterations == 0

    def test_status(self):
        assert result_status(Found(salt=1, address=0, iterations=2)) == "found"
        assert result_status(NotFound(iterations=5)) == "not_found"
        assert result_status(InvalidMask(target_mask=0x4000)) == "invalid_mask"
        assert result_status(Cancelled(iterations=3)) == "cancelled"

    def test_found_to_dict(self):
        data = result_to_dict(Found(salt=255, address=(0xAB << 14) | 0x00C4, iterations=256))
        assert data["status"] == "found"
        assert data["salt"] == 255
        assert data["salt_hex"] == "0x" + "00" * 31 + "ff"
        assert data["flags"] == 0x00C4
        assert data["flag_names"] == ["BEFORE_SWAP", "AFTER_SWAP", "AFTER_SWAP_DELTA"]
        assert data["iterations"] == 256

    def test_invalid_mask_to_dict(self):
        assert result_to_dict(InvalidMask(target_mask=0x4000)) == {
            "status": "invalid_mask",
            "iterations": 0,
            "target_mask": 0x4000,
        }


class TestMiningProgress:
    def test_percent_and_rate(self):
        progress = MiningProgress(iterations=250, max_iterations=1000, elapsed=0.5)
        assert progress.percent == 25.0
        assert progress.rate == 500.0

    def test_zero_bound(self):
        progress = MiningProgress(iterations=0, max_iterations=0, elapsed=0.0, complete=True)
        assert progress.percent == 100.0
        assert progress.rate == 0.0
