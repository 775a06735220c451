"""
Utility functions for the Drip SDK.
"""

from __future__ import annotations

_DJB2_SEED = 5381
_MASK_64 = 0xFFFFFFFFFFFFFFFF


def _format_number(number: float) -> str:
    # %g keeps keys identical for 1500 and 1500.0
    return format(float(number), "g")


def derive_idempotency_key(
    prefix: str,
    first: str,
    second: str,
    number: float = 0,
) -> str:
    """
    Derive a deterministic idempotency key from the fields that identify a call.

    The fields are joined as ``prefix:first:second:number`` and hashed with
    64-bit djb2. This is not a cryptographic hash; it only has to give the
    same key for the same logical call so the server can deduplicate retries.

    Args:
        prefix: Operation prefix (e.g. ``"track"``, ``"evt"``, ``"run"``).
        first: First identifying field (customer id, run id).
        second: Second identifying field (meter, event type).
        number: Quantity or index.

    Returns:
        Key of the form ``"<prefix>_<hex>"``.

    Example:
        >>> key = derive_idempotency_key("track", "cus_1", "tokens", 1500)
        >>> key == derive_idempotency_key("track", "cus_1", "tokens", 1500.0)
        True
    """
    key_input = f"{prefix}:{first}:{second}:{_format_number(number)}"
    digest = _DJB2_SEED
    for byte in key_input.encode("utf-8"):
        digest = ((digest << 5) + digest + byte) & _MASK_64
    return f"{prefix}_{digest:x}"


def _capitalize_ascii(word: str) -> str:
    if word and "a" <= word[0] <= "z":
        return word[0].upper() + word[1:]
    return word


def display_name_from_slug(slug: str) -> str:
    """
    Turn a workflow slug into a display name.

    ``"training-run"`` and ``"training_run"`` both become ``"Training Run"``.
    Only an ASCII lowercase first letter of each word changes case.
    """
    words = slug.replace("_", " ").replace("-", " ").split(" ")
    return " ".join(_capitalize_ascii(word) for word in words)


def strip_api_version(base_url: str) -> str:
    """Remove a trailing ``/v<N>`` segment from a base URL."""
    url = base_url.rstrip("/")
    head, sep, tail = url.rpartition("/")
    if sep and len(tail) > 1 and tail[0] == "v" and tail[1:].isdigit():
        return head
    return url
