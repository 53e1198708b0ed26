"""
cred_atlas/core/address.py — Node and edge addresses.

An address is a tuple of string parts. Each source puts its nodes and edges
under its own leading parts (its namespace), so graphs from different sources
never collide. Prefix matching is component-wise: ("a", "b") is a prefix of
("a", "b", "c") but not of ("a", "bc").

Node and edge addresses share a representation; the two names exist only to
make signatures say which kind they expect.
"""

from typing import Iterable

NodeAddress = tuple[str, ...]
EdgeAddress = tuple[str, ...]

# The empty address is a prefix of every address.
EMPTY: tuple[str, ...] = ()


def address_from_parts(parts: Iterable[str]) -> tuple[str, ...]:
    """Build an address from its parts, rejecting anything that is not a str."""
    address = tuple(parts)
    for part in address:
        if not isinstance(part, str):
            raise TypeError(f"Address parts must be strings, got {part!r}")
    return address


def append(prefix: tuple[str, ...], *parts: str) -> tuple[str, ...]:
    return prefix + address_from_parts(parts)


def has_prefix(address: tuple[str, ...], prefix: tuple[str, ...]) -> bool:
    """True iff the leading components of address equal prefix."""
    return address[: len(prefix)] == prefix


def matches_any(address: tuple[str, ...], prefixes: Iterable[tuple[str, ...]]) -> bool:
    """True iff address has at least one of prefixes. No prefixes matches nothing."""
    return any(has_prefix(address, p) for p in prefixes)


def to_string(address: tuple[str, ...]) -> str:
    """Human-readable form used in log lines and error messages."""
    return "/".join(address) if address else "<empty>"
