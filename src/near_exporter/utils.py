from __future__ import annotations
import logging

logger = logging.getLogger(__name__)
logger.addHandler(logging.NullHandler())

# Stake amounts are yoctoNEAR strings: 24 fractional digits. Dropping the
# last 19 and dividing by 10**5 yields NEAR.
STAKE_TRUNCATED_DIGITS = 19
STAKE_SCALE = 10 ** 5

FNV32_OFFSET_BASIS = 2166136261
FNV32_PRIME = 16777619


def get_stake_from_string(s: str) -> float:
    """Convert a yoctoNEAR decimal string into NEAR.

    Strings of 19 digits or fewer round to exactly 0. Unparseable
    prefixes are logged and also yield 0.
    """
    if len(s) <= STAKE_TRUNCATED_DIGITS:
        return 0.0
    prefix = s[:len(s) - STAKE_TRUNCATED_DIGITS]
    try:
        value = float(prefix)
    except ValueError as e:
        logger.warning(f"Unable to parse stake {s!r}: {e}")
        return 0.0
    return value / STAKE_SCALE


def hash_string(s: str) -> int:
    """FNV-1a 32-bit hash of the UTF-8 bytes of ``s``."""
    h = FNV32_OFFSET_BASIS
    for b in s.encode("utf-8"):
        h ^= b
        h = (h * FNV32_PRIME) & 0xFFFFFFFF
    return h
