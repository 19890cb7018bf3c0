import pytest
from eth_utils import keccak

from hook_miner.address import (
    CREATE2_DEPLOYER,
    address_to_bytes,
    derive_address,
    derive_address_bytes,
    encode_salt,
    init_code_fingerprint,
    to_checksum,
)

ZERO_IDENTITY = bytes(20)
TEST_FINGERPRINT = keccak(b"test")


class TestDeriveAddress:
    """Test CREATE2 derivation against the EIP-1014 examples"""

    @pytest.mark.parametrize(
        "deployer, salt, init_code, expected",
        [
            ("00" * 20, 0, "00", "0x4D1A2e2bB4F88F0250f26Ffff098B0b30B26BF38"),
            ("deadbeef" + "00" * 16, 0, "00", "0xB928f69Bb1D91Cd65274e3c79d8986362984fDA3"),
            (
                "deadbeef" + "00" * 16,
                0xFEED << (8 * 18),
                "00",
                "0xD04116cDd17beBE565EB2422F2497E06cC1C9833",
            ),
            ("00" * 16 + "deadbeef", 0xCAFEBABE, "deadbeef", "0x60f3f640a8508fC6a86d45DF051962668E1e8AC7"),
        ],
    )
    def test_eip1014_vectors(self, deployer, salt, init_code, expected):
        fingerprint = init_code_fingerprint(bytes.fromhex(init_code))
        address = derive_address(bytes.fromhex(deployer), salt, fingerprint)
        assert to_checksum(address) == expected

    def test_deterministic(self):
        """Same inputs always derive the same address"""
        first = derive_address(ZERO_IDENTITY, 1234, TEST_FINGERPRINT)
        for _ in range(5):
            assert derive_address(ZERO_IDENTITY, 1234, TEST_FINGERPRINT) == first

    def test_salt_sensitivity(self):
        """Distinct salts give distinct addresses"""
        addresses = {derive_address(ZERO_IDENTITY, salt, TEST_FINGERPRINT) for salt in range(2000)}
        assert len(addresses) == 2000

    def test_fits_in_160_bits(self):
        for salt in range(100):
            assert 0 <= derive_address(ZERO_IDENTITY, salt, TEST_FINGERPRINT) < 1 << 160

    def test_int_and_bytes_forms_agree(self):
        as_bytes = derive_address_bytes(ZERO_IDENTITY, 42, TEST_FINGERPRINT)
        assert len(as_bytes) == 20
        assert int.from_bytes(as_bytes, "big") == derive_address(ZERO_IDENTITY, 42, TEST_FINGERPRINT)

    def test_identity_changes_address(self):
        other = bytes.fromhex(CREATE2_DEPLOYER[2:])
        assert derive_address(other, 0, TEST_FINGERPRINT) != derive_address(ZERO_IDENTITY, 0, TEST_FINGERPRINT)


class TestEncodeSalt:
    """Test the 32-byte salt field"""

    def test_big_endian(self):
        assert encode_salt(1) == bytes(31) + b"\x01"

    def test_max(self):
        assert encode_salt((1 << 256) - 1) == b"\xff" * 32

    def test_overflow(self):
        with pytest.raises(OverflowError):
            encode_salt(1 << 256)

    def test_negative(self):
        with pytest.raises(OverflowError):
            encode_salt(-1)


class TestFingerprint:
    """Test init code hashing"""

    def test_known_digest(self):
        assert TEST_FINGERPRINT.hex() == "9c22ff5f21f0b81b113e63f7db6da94fedef11b2119b4088b89664fb9a3cb658"

    def test_constructor_args_appended(self):
        assert init_code_fingerprint(b"\x60\x80", b"\x00\x01") == keccak(b"\x60\x80\x00\x01")


class TestChecksum:
    def test_round_trip_bytes(self):
        value = int(CREATE2_DEPLOYER, 16)
        assert address_to_bytes(value).hex() == CREATE2_DEPLOYER[2:].lower()
        assert to_checksum(value) == CREATE2_DEPLOYER
