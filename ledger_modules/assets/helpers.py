"""
Fixed Assets Helpers (``ledger_modules.assets.helpers``).

Responsibility
--------------
Pure calculation functions for monthly depreciation and disposal
gain/loss.  No session, no clock, no database access.

Invariants enforced
-------------------
* All numeric inputs and outputs use ``Decimal`` -- NEVER ``float``.
* Results are quantized to 2 decimal places.
* A charge never takes book value below salvage value.

Failure modes
-------------
* Zero or negative useful life  -> returns ``Decimal("0")``.
* Book value at or below salvage  -> returns ``Decimal("0")``.
"""

from __future__ import annotations

from decimal import Decimal

from ledger_kernel.domain.money import ZERO, quantize_cents


def straight_line(
    cost: Decimal,
    salvage_value: Decimal,
    useful_life_months: int,
) -> Decimal:
    """
    Monthly straight-line charge: ``(cost - salvage) / life``.

    Returns ``Decimal("0")`` if ``useful_life_months`` <= 0.
    """
    if useful_life_months <= 0:
        return ZERO
    return quantize_cents((cost - salvage_value) / useful_life_months)


def declining_balance(
    book_value: Decimal,
    useful_life_months: int,
) -> Decimal:
    """
    Monthly double-declining charge: ``book_value * 2 / life``.

    The salvage floor is applied by ``monthly_charge``.
    """
    if useful_life_months <= 0:
        return ZERO
    return quantize_cents(book_value * Decimal("2") / Decimal(useful_life_months))


def monthly_charge(
    method: str,
    cost: Decimal,
    salvage_value: Decimal,
    book_value: Decimal,
    useful_life_months: int,
) -> Decimal:
    """
    Depreciation due for one month, capped so book value stays >= salvage.

    ``declining_balance`` is honoured; any other method is charged
    straight-line.

    Postconditions:
        - 0 <= result <= book_value - salvage_value.
    """
    headroom = book_value - salvage_value
    if headroom <= ZERO or useful_life_months <= 0:
        return ZERO
    if method == "declining_balance":
        charge = declining_balance(book_value, useful_life_months)
    else:
        charge = straight_line(cost, salvage_value, useful_life_months)
    return quantize_cents(min(charge, headroom))


def disposal_gain_loss(
    cost: Decimal,
    accumulated_depreciation: Decimal,
    proceeds: Decimal,
) -> Decimal:
    """
    Gain (positive) or loss (negative) on disposal.

    Book value is taken as ``cost - accumulated_depreciation`` so the
    disposal entry always balances against the cost and contra lines.
    """
    book_value = cost - accumulated_depreciation
    return quantize_cents(proceeds - book_value)
