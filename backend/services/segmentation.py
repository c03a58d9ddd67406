# Cirrus/backend/services/segmentation.py
"""Deterministic percentage bucketing for segmentation conditions.

A context value and a seed are hashed with 32-bit FNV-1a and mapped to
``[0, 1)``. The same inputs land in the same bucket on every server and
SDK, so rollouts stay sticky per user.
"""


from __future__ import annotations

from typing import Any

from services.json_types import to_plain_string

FNV_OFFSET_BASIS = 0x811C9DC5
FNV_PRIME = 0x01000193
_UINT32 = 0xFFFFFFFF


def fnv1a32(text: str) -> int:
    """32-bit FNV-1a hash of the UTF-8 bytes of ``text``."""
    hash_value = FNV_OFFSET_BASIS
    for byte in text.encode("utf-8"):
        hash_value ^= byte
        hash_value = (hash_value * FNV_PRIME) & _UINT32
    return hash_value


def unit_interval(value: Any, seed: str) -> float:
    """Map ``value`` + ``seed`` to a float in ``[0, 1)``."""
    return fnv1a32(to_plain_string(value) + seed) / 2 ** 32

