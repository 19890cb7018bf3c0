import base64
from typing import Literal, Union

from hook_miner.address import FINGERPRINT_SIZE, IDENTITY_SIZE
from hook_miner.errors import InputFormatError

type InitCodeFormat = Union[Literal[
    "hex",
    "raw",
    "b64",
], str]


def hex_to_bytes(text: str, *, size: int | None = None, name: str = "value") -> bytes:
    """Decode a hex string (with or without 0x) and optionally enforce its width."""
    text = text.strip()
    if text[:2].lower() == "0x":
        text = text[2:]
    try:
        data = bytes.fromhex(text)
    except ValueError:
        raise InputFormatError(f"{name} is not valid hex: {text!r}") from None

    if size is not None and len(data) != size:
        raise InputFormatError(f"{name} must be {size} bytes, got {len(data)}")
    return data


def parse_identity(text: str) -> bytes:
    """Parse a 20-byte deployer address."""
    return hex_to_bytes(text, size=IDENTITY_SIZE, name="deployer")


def parse_fingerprint(text: str) -> bytes:
    """Parse a 32-byte init code hash."""
    return hex_to_bytes(text, size=FINGERPRINT_SIZE, name="init code hash")


def parse_salt(text: str) -> int:
    """Parse a salt given as decimal or 0x-prefixed hex."""
    try:
        salt = int(text.strip(), 0)
    except ValueError:
        raise InputFormatError(f"salt is not an integer: {text!r}") from None
    if not 0 <= salt < 1 << 256:
        raise InputFormatError(f"salt must fit in 32 bytes: {text!r}")
    return salt


def b64_decode(b64_text: Union[str, bytes]) -> bytes:
    """Decodes either standard or URL-safe b64. Tolerates missing '=' padding."""
    if isinstance(b64_text, bytes):
        b64_text = b64_text.decode("ascii")
    b64_text = "".join(b64_text.split())

    missing = len(b64_text) % 4
    if missing:
        b64_text += "=" * (4 - missing)

    try:
        return base64.b64decode(b64_text, validate=True)
    except ValueError:
        try:
            return base64.urlsafe_b64decode(b64_text)
        except ValueError:
            raise InputFormatError("init code is not valid base64") from None


def load_init_code(file_path: str, format: InitCodeFormat) -> bytes:
    """Load contract creation code from a file."""
    with open(file_path, "rb") as f:
        data = f.read()
    if format == "hex":
        return hex_to_bytes(data.decode("utf-8"), name="init code")
    elif format == "raw":
        return data
    elif format == "b64":
        return b64_decode(data)
    else:
        raise ValueError(f"Invalid init code format: {format}")
