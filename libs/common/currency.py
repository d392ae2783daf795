"""Money helpers for the marketplace.

Internal storage unit: fils (smallest KWD unit, 1000 fils = KD 1).
API / display unit: dinar as ``Decimal`` with three places (``Decimal("10.000")``).

Every amount that touches the database is an ``int`` of fils. Rounding happens
in exactly one place, :func:`apply_rate`, and always rounds half up.
"""

from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal

# ─── constants ───────────────────────────────────────────────────────────────

FILS_PER_DINAR: int = 1000
_DINAR_QUANTUM = Decimal("0.001")
_HUNDRED = Decimal(100)


# ─── conversion helpers ───────────────────────────────────────────────────────


def to_minor(amount: Decimal | int | str) -> int:
    """Convert dinar to fils (round half-up). KD 1 = 1000 fils."""
    value = Decimal(str(amount)) * FILS_PER_DINAR
    return int(value.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def to_major(minor: int) -> Decimal:
    """Convert fils to dinar, always with three decimal places."""
    return (Decimal(minor) / FILS_PER_DINAR).quantize(_DINAR_QUANTUM)


def apply_rate(amount_minor: int, percent: Decimal) -> int:
    """Return ``percent`` % of ``amount_minor`` fils, rounded half-up to a whole fils."""
    raw = Decimal(amount_minor) * Decimal(percent) / _HUNDRED
    return int(raw.quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_kwd(minor: int) -> str:
    """Human readable amount, e.g. ``KD 12.500``."""
    return f"KD {to_major(minor)}"
