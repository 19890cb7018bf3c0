from dataclasses import dataclass
from typing import Optional

from hook_miner.address import derive_address, to_checksum
from hook_miner.flags import extract_flags


def matches(address: int, target_mask: int) -> bool:
    """True when the address carries exactly the target flags."""
    return extract_flags(address) == target_mask


@dataclass(frozen=True, slots=True)
class VerificationReport:
    salt: int
    address: int
    flags: int
    expected_flags: int
    deployed_address: Optional[int] = None

    @property
    def flags_match(self) -> bool:
        return self.flags == self.expected_flags

    @property
    def address_match(self) -> bool:
        """False only when a deployed address was given and differs."""
        return self.deployed_address is None or self.deployed_address == self.address

    @property
    def ok(self) -> bool:
        return self.flags_match and self.address_match

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "salt": self.salt,
            "address": to_checksum(self.address),
            "flags": self.flags,
            "expected_flags": self.expected_flags,
            "flags_match": self.flags_match,
            "deployed_address": None if self.deployed_address is None else to_checksum(self.deployed_address),
            "address_match": self.address_match,
        }


def verify_deployment(
    identity: bytes,
    salt: int,
    fingerprint: bytes,
    target_mask: int,
    deployed_address: Optional[int] = None,
) -> VerificationReport:
    """Recompute a mined address and check it against the flags (and the realized address, if known)."""
    address = derive_address(identity, salt, fingerprint)
    return VerificationReport(
        salt=salt,
        address=address,
        flags=extract_flags(address),
        expected_flags=target_mask,
        deployed_address=deployed_address,
    )
