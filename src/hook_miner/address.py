"""CREATE2 address derivation.

The deployed address is the low 160 bits of
    keccak256(0xff ++ deployer ++ salt ++ init_code_hash)
so it is known before the deployment transaction is ever sent.
"""
from eth_utils import keccak, to_checksum_address

CREATE2_PREFIX = b"\xff"
IDENTITY_SIZE = 20
FINGERPRINT_SIZE = 32
SALT_SIZE = 32
ADDRESS_MASK = (1 << 160) - 1

# Deterministic deployment proxy used by forge scripts for `new C{salt: s}()`.
CREATE2_DEPLOYER = "0x4e59b44847b379578588920cA78FbF26c0B4956C"


def encode_salt(salt: int) -> bytes:
    """Big-endian 32-byte salt field. Raises OverflowError outside [0, 2**256)."""
    return salt.to_bytes(SALT_SIZE, "big")


def derive_address_bytes(identity: bytes, salt: int, fingerprint: bytes) -> bytes:
    """Derive the 20-byte CREATE2 address."""
    return keccak(CREATE2_PREFIX + identity + encode_salt(salt) + fingerprint)[-IDENTITY_SIZE:]


def derive_address(identity: bytes, salt: int, fingerprint: bytes) -> int:
    """Derive the CREATE2 address as an unsigned 160-bit integer."""
    return int.from_bytes(derive_address_bytes(identity, salt, fingerprint), "big")


def init_code_fingerprint(bytecode: bytes, constructor_args: bytes = b"") -> bytes:
    """keccak256 of the creation code with its ABI-encoded constructor arguments appended."""
    return keccak(bytecode + constructor_args)


def address_to_bytes(address: int) -> bytes:
    return (address & ADDRESS_MASK).to_bytes(IDENTITY_SIZE, "big")


def to_checksum(address: int) -> str:
    """EIP-55 mixed-case hex form of an address."""
    return to_checksum_address(address_to_bytes(address))
