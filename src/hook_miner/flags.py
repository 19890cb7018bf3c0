from enum import IntFlag
from typing import Iterable, List, Union

from hook_miner.errors import FlagParseError


class HookFlag(IntFlag):
    """Hook capabilities encoded in the low 14 bits of a hook address."""

    BEFORE_INIT = 1 << 13
    AFTER_INIT = 1 << 12
    BEFORE_ADD_LIQ = 1 << 11
    AFTER_ADD_LIQ = 1 << 10
    BEFORE_REMOVE_LIQ = 1 << 9
    AFTER_REMOVE_LIQ = 1 << 8
    BEFORE_SWAP = 1 << 7
    AFTER_SWAP = 1 << 6
    BEFORE_DONATE = 1 << 5
    AFTER_DONATE = 1 << 4
    BEFORE_SWAP_DELTA = 1 << 3
    AFTER_SWAP_DELTA = 1 << 2
    AFTER_ADD_LIQ_DELTA = 1 << 1
    AFTER_REMOVE_LIQ_DELTA = 1 << 0


FLAG_BITS = 14
ALL_FLAGS_MASK = (1 << FLAG_BITS) - 1  # 0x3FFF

# Flag sets mined by the deployment scripts.
PRESETS = {
    "arb": int(HookFlag.BEFORE_SWAP | HookFlag.AFTER_SWAP | HookFlag.AFTER_SWAP_DELTA),
}

type FlagSpec = Union[str, int, HookFlag]


def extract_flags(address: int) -> int:
    """Return the flag bits of an address. Higher bits are ignored."""
    return address & ALL_FLAGS_MASK


def is_valid_mask(mask: int) -> bool:
    """True when the mask only uses bits any address could carry."""
    return 0 <= mask and (mask & ~ALL_FLAGS_MASK) == 0


def _normalize_name(name: str) -> str:
    return name.strip().upper().replace("-", "_")


def parse_flag(spec: FlagSpec) -> int:
    """Parse one flag name, preset name or integer literal into a mask.

    Integer literals are returned as-is, even when they fall outside the
    flag domain, so the miner can report them as an invalid mask.
    """
    if isinstance(spec, int):
        return int(spec)

    text = spec.strip()
    if not text:
        raise FlagParseError("Empty flag name")

    preset = PRESETS.get(text.lower())
    if preset is not None:
        return preset

    try:
        return int(text, 0)
    except ValueError:
        pass

    name = _normalize_name(text)
    if name.endswith("_FLAG"):
        name = name[: -len("_FLAG")]
    try:
        return int(HookFlag[name])
    except KeyError:
        raise FlagParseError(f"Unknown hook flag: {spec}") from None


def parse_flags(specs: Iterable[FlagSpec]) -> int:
    """Combine flag names, presets and literals (also comma separated) into one mask."""
    mask = 0
    for spec in specs:
        if isinstance(spec, str) and "," in spec:
            mask |= parse_flags(part for part in spec.split(",") if part.strip())
        else:
            mask |= parse_flag(spec)
    return mask


def describe_flags(mask: int) -> List[str]:
    """Names of the flags set in the mask, highest bit first."""
    return [flag.name for flag in sorted(HookFlag, reverse=True) if mask & flag]
