"""
Semantic-version precedence.

Every ordering decision in the registry (latest version, version listings)
goes through :func:`precedence_key`, so sorting and "latest" always agree.

Key layout::

    (major, minor, patch, release_flag, identifiers)

``release_flag`` is 1 for releases and 0 for pre-releases, so a release
outranks any pre-release with the same core. Each pre-release identifier is
``(0, n, "")`` when numeric and ``(1, 0, s)`` when alphanumeric: numeric
identifiers compare numerically and rank below alphanumeric ones, which
compare lexically. Tuple comparison makes a shorter identifier list that is a
prefix of a longer one rank lower, as semver requires.
"""

from __future__ import annotations

from typing import Iterable, Optional

PrecedenceKey = tuple[int, int, int, int, tuple[tuple[int, int, str], ...]]


def _is_numeric(identifier: str) -> bool:
    # str.isdigit also accepts non-ASCII digits such as "²".
    return identifier.isascii() and identifier.isdigit()


def _core_field(parts: list[str], index: int) -> int:
    if index < len(parts) and _is_numeric(parts[index]):
        return int(parts[index])
    return 0


def _identifier_key(identifier: str) -> tuple[int, int, str]:
    if _is_numeric(identifier):
        return (0, int(identifier), "")
    return (1, 0, identifier)


def precedence_key(version: str) -> PrecedenceKey:
    """Build the comparable precedence key for ``version``.

    >>> precedence_key("1.0.0-2") < precedence_key("1.0.0-11") < precedence_key("1.0.0")
    True
    """
    core = version.split("+", 1)[0]
    core, sep, prerelease = core.partition("-")
    parts = core.split(".")
    numbers = (_core_field(parts, 0), _core_field(parts, 1), _core_field(parts, 2))

    if not sep:
        return (*numbers, 1, ())
    identifiers = tuple(_identifier_key(i) for i in prerelease.split("."))
    return (*numbers, 0, identifiers)


def compare(a: str, b: str) -> int:
    """Three-way comparison: -1, 0 or 1."""
    ka, kb = precedence_key(a), precedence_key(b)
    return (ka > kb) - (ka < kb)


def sort_versions(versions: Iterable[str], *, descending: bool = False) -> list[str]:
    return sorted(versions, key=precedence_key, reverse=descending)


def latest(versions: Iterable[str]) -> Optional[str]:
    """Highest-precedence version, or None for an empty history."""
    return max(versions, key=precedence_key, default=None)
