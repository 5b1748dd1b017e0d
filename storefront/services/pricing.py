"""
Pricing Engine

Pure functions turning catalog line items into display and transactional
totals. Tax is levied on the base price only; the platform fee is never
taxed. Amounts keep full Decimal precision; rounding happens only in
format_price.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Protocol, Union

from ..core.exceptions import TotalMismatchWarning

logger = logging.getLogger(__name__)

DEFAULT_TAX_RATE = Decimal("0.075")
DEFAULT_TOLERANCE = Decimal("0.01")
CURRENCY_SYMBOL = "₦"  # Naira

Number = Union[Decimal, int, float, str]


class PricedItem(Protocol):
    base_price_per_unit: Decimal
    platform_fee_per_unit: Decimal
    quantity: int


def _to_decimal(value: Optional[Number]) -> Decimal:
    if value is None:
        return Decimal("0")
    if isinstance(value, Decimal):
        return value
    # str() keeps floats like 0.075 from dragging in binary noise
    return Decimal(str(value))


def _tax_rate(tax_rate: Optional[Number]) -> Decimal:
    rate = DEFAULT_TAX_RATE if tax_rate is None else _to_decimal(tax_rate)
    if rate < 0 or rate >= 1:
        raise ValueError(f"Tax rate must be in [0, 1), got {rate}")
    return rate


def unit_price_with_fee(item: PricedItem) -> Decimal:
    """Tax-exclusive unit price: base + platform fee"""
    return _to_decimal(item.base_price_per_unit) + _to_decimal(item.platform_fee_per_unit)


def all_inclusive_unit_price(item: PricedItem, tax_rate: Optional[Number] = DEFAULT_TAX_RATE) -> Decimal:
    """Unit price with tax on the base price and the untaxed platform fee"""
    base = _to_decimal(item.base_price_per_unit)
    fee = _to_decimal(item.platform_fee_per_unit)
    return base + base * _tax_rate(tax_rate) + fee


def line_item_total(item: PricedItem, tax_rate: Optional[Number] = DEFAULT_TAX_RATE) -> Decimal:
    """All-inclusive unit price times quantity"""
    return all_inclusive_unit_price(item, tax_rate) * item.quantity


def cart_subtotal(items: Iterable[PricedItem], tax_rate: Optional[Number] = DEFAULT_TAX_RATE) -> Decimal:
    """Sum of all-inclusive line totals"""
    rate = _tax_rate(tax_rate)
    return sum((line_item_total(item, rate) for item in items), Decimal("0"))


@dataclass(frozen=True)
class Reconciliation:
    """Outcome of checking a remote total against the local recomputation"""
    local_total: Decimal
    remote_total: Optional[Decimal]
    mismatch: bool

    @property
    def value_of_record(self) -> Decimal:
        # The local figure is reproducible from the line items, so it wins.
        return self.local_total

    @property
    def difference(self) -> Decimal:
        if self.remote_total is None:
            return Decimal("0")
        return self.remote_total - self.local_total


def reconcile_total(
    remote_total: Optional[Number],
    items: Iterable[PricedItem],
    tax_rate: Optional[Number] = DEFAULT_TAX_RATE,
    tolerance: Optional[Number] = DEFAULT_TOLERANCE,
    context: str = "cart",
) -> Reconciliation:
    """
    Recompute a total from its line items and compare with the remote figure.

    A difference beyond the tolerance is logged as a TotalMismatchWarning.
    It is never raised.
    """
    local_total = cart_subtotal(items, tax_rate)
    if remote_total is None:
        return Reconciliation(local_total=local_total, remote_total=None, mismatch=False)

    remote = _to_decimal(remote_total)
    limit = DEFAULT_TOLERANCE if tolerance is None else _to_decimal(tolerance)
    mismatch = abs(remote - local_total) > limit
    if mismatch:
        logger.warning(
            f"{TotalMismatchWarning.__name__}: {context} total from remote {remote} "
            f"differs from recomputed {local_total}; using recomputed total"
        )
    return Reconciliation(local_total=local_total, remote_total=remote, mismatch=mismatch)


def format_price(amount: Optional[Number]) -> str:
    """Format an amount for display, e.g. 1155 -> '₦1,155'"""
    if amount is None or amount == "":
        return "Price not available"
    try:
        value = _to_decimal(amount)
    except ArithmeticError:
        return f"{CURRENCY_SYMBOL}0"
    if not value.is_finite():
        return f"{CURRENCY_SYMBOL}0"

    whole = value.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
    sign = "-" if whole < 0 else ""
    return f"{sign}{CURRENCY_SYMBOL}{abs(whole):,}"
