from dataclasses import dataclass
from typing import Any, Dict, Union

from hook_miner.address import FINGERPRINT_SIZE, IDENTITY_SIZE, to_checksum
from hook_miner.flags import describe_flags, extract_flags


@dataclass(frozen=True, slots=True)
class MiningRequest:
    """One salt search: who deploys, what is deployed, which flags, how far to look."""

    identity: bytes
    fingerprint: bytes
    target_mask: int
    max_iterations: int

    def __post_init__(self):
        if len(self.identity) != IDENTITY_SIZE:
            raise ValueError(f"identity length {len(self.identity)} != {IDENTITY_SIZE}")
        if len(self.fingerprint) != FINGERPRINT_SIZE:
            raise ValueError(f"fingerprint length {len(self.fingerprint)} != {FINGERPRINT_SIZE}")
        if self.max_iterations < 0:
            raise ValueError(f"max_iterations must be >= 0, got {self.max_iterations}")
        object.__setattr__(self, "identity", bytes(self.identity))
        object.__setattr__(self, "fingerprint", bytes(self.fingerprint))


@dataclass(frozen=True, slots=True)
class Found:
    salt: int
    address: int
    iterations: int

    ok = True

    @property
    def checksum_address(self) -> str:
        return to_checksum(self.address)

    @property
    def flags(self) -> int:
        return extract_flags(self.address)


@dataclass(frozen=True, slots=True)
class NotFound:
    """The whole bound was searched without a match."""

    iterations: int

    ok = False


@dataclass(frozen=True, slots=True)
class InvalidMask:
    """The target mask has bits no address can carry. Nothing was searched."""

    target_mask: int
    iterations: int = 0

    ok = False


@dataclass(frozen=True, slots=True)
class Cancelled:
    """The caller stopped the search before the bound was reached."""

    iterations: int

    ok = False


type MiningResult = Union[Found, NotFound, InvalidMask, Cancelled]


@dataclass(frozen=True, slots=True)
class MiningProgress:
    """Immutable progress observation handed to observers."""

    iterations: int
    max_iterations: int
    elapsed: float
    complete: bool = False

    @property
    def percent(self) -> float:
        if self.max_iterations == 0:
            return 100.0
        return self.iterations / self.max_iterations * 100

    @property
    def rate(self) -> float:
        """Candidates per second."""
        if self.elapsed <= 0:
            return 0.0
        return self.iterations / self.elapsed


def result_status(result: MiningResult) -> str:
    match result:
        case Found():
            return "found"
        case NotFound():
            return "not_found"
        case InvalidMask():
            return "invalid_mask"
        case Cancelled():
            return "cancelled"
        case _:
            raise TypeError(f"Not a mining result: {result!r}")


def result_to_dict(result: MiningResult) -> Dict[str, Any]:
    """JSON-friendly view of a result, shared by the CLI and the API."""
    out: Dict[str, Any] = {
        "status": result_status(result),
        "iterations": result.iterations,
    }
    if isinstance(result, Found):
        out["salt"] = result.salt
        out["salt_hex"] = f"0x{result.salt:064x}"
        out["address"] = result.checksum_address
        out["flags"] = result.flags
        out["flag_names"] = describe_flags(result.flags)
    elif isinstance(result, InvalidMask):
        out["target_mask"] = result.target_mask
    return out
