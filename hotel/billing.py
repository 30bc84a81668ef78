"""
Order totals, discounts and the customer cart.

Everything here is pure: values in, values out. Amounts are Decimals carried
at full precision; rounding to whole currency units only happens for display,
receipts and the total persisted at settlement.
"""
from dataclasses import dataclass, replace
from decimal import Decimal, ROUND_HALF_UP
import time

from .exceptions import InvalidDiscount

SERVICE_CHARGE_RATE = Decimal('0.10')
VAT_RATE = Decimal('0.16')

MOBILE_MONEY_METHODS = frozenset({'mpesa', 'tcash', 'airtel_money'})

ZERO = Decimal('0')


def to_decimal(value):
    """Coerce ints, strings and floats to Decimal without float artefacts."""
    if isinstance(value, Decimal):
        return value
    if value is None:
        return ZERO
    return Decimal(str(value))


def round_currency(amount):
    """Round half-up to the nearest whole currency unit."""
    return to_decimal(amount).quantize(Decimal('1'), rounding=ROUND_HALF_UP)


# ============================================================================
# TOTALS
# ============================================================================

@dataclass(frozen=True)
class LineItem:
    """A priced line: unit price and quantity."""
    unit_price: Decimal
    quantity: int

    @property
    def total_price(self):
        return to_decimal(self.unit_price) * self.quantity


@dataclass(frozen=True)
class Totals:
    """Monetary breakdown of an order."""
    subtotal: Decimal
    service_charge: Decimal
    vat: Decimal
    discount: Decimal
    total: Decimal

    @property
    def gross(self):
        """Amount before discount."""
        return self.subtotal + self.service_charge + self.vat

    def rounded(self):
        """Display values: every component rounded to whole units."""
        return Totals(
            subtotal=round_currency(self.subtotal),
            service_charge=round_currency(self.service_charge),
            vat=round_currency(self.vat),
            discount=round_currency(self.discount),
            total=round_currency(self.total),
        )


def compute_totals(items, service_charge_rate=SERVICE_CHARGE_RATE, vat_rate=VAT_RATE):
    """
    Compute subtotal, service charge, VAT and total for a set of line items.

    Each item needs ``unit_price`` and ``quantity`` attributes.
    VAT is charged on subtotal plus service charge.
    """
    service_charge_rate = to_decimal(service_charge_rate)
    vat_rate = to_decimal(vat_rate)

    subtotal = sum((to_decimal(item.unit_price) * item.quantity for item in items), ZERO)
    service_charge = subtotal * service_charge_rate
    vat = (subtotal + service_charge) * vat_rate
    return Totals(
        subtotal=subtotal,
        service_charge=service_charge,
        vat=vat,
        discount=ZERO,
        total=subtotal + service_charge + vat,
    )


def apply_discount(totals, discount_amount):
    """
    Return new totals with ``discount_amount`` taken off the total.

    Raises InvalidDiscount for a negative discount or one larger than the
    current total. A discount equal to the total brings it to zero.
    """
    discount = to_decimal(discount_amount)
    if discount < 0:
        raise InvalidDiscount('Discount cannot be negative.')
    if discount > totals.total:
        raise InvalidDiscount(
            f'Discount {discount} exceeds order total {totals.total}.'
        )
    return replace(totals, discount=discount, total=totals.total - discount)


# ============================================================================
# CART
# ============================================================================

@dataclass
class CartLine:
    """One menu item in the cart."""
    menu_item: object
    quantity: int

    @property
    def unit_price(self):
        return to_decimal(self.menu_item.price)

    @property
    def total_price(self):
        return self.unit_price * self.quantity


class Cart:
    """
    Unsubmitted order lines, keyed by menu item.

    Adding an item already in the cart increments its quantity; setting a
    quantity of zero or less removes the line.
    """

    def __init__(self):
        self._lines = {}

    def __len__(self):
        return len(self._lines)

    def __iter__(self):
        return iter(self._lines.values())

    @property
    def lines(self):
        return list(self._lines.values())

    @property
    def item_count(self):
        return sum(line.quantity for line in self._lines.values())

    def add(self, menu_item, quantity=1):
        """Add ``quantity`` of ``menu_item``, merging with an existing line."""
        line = self._lines.get(menu_item.id)
        if line is None:
            self._lines[menu_item.id] = CartLine(menu_item=menu_item, quantity=quantity)
        else:
            line.quantity += quantity
        if self._lines[menu_item.id].quantity <= 0:
            del self._lines[menu_item.id]

    def set_quantity(self, menu_item_id, quantity):
        if quantity <= 0:
            self._lines.pop(menu_item_id, None)
        elif menu_item_id in self._lines:
            self._lines[menu_item_id].quantity = quantity

    def clear(self):
        self._lines.clear()

    def totals(self, service_charge_rate=SERVICE_CHARGE_RATE, vat_rate=VAT_RATE):
        return compute_totals(self.lines, service_charge_rate, vat_rate)


# ============================================================================
# PAYMENT HELPERS
# ============================================================================

_BASE36_DIGITS = '0123456789abcdefghijklmnopqrstuvwxyz'


def _to_base36(number):
    if number == 0:
        return '0'
    digits = []
    while number:
        number, remainder = divmod(number, 36)
        digits.append(_BASE36_DIGITS[remainder])
    return ''.join(reversed(digits))


def requires_transaction_code(method):
    """Mobile-money payments carry a transaction code."""
    return method in MOBILE_MONEY_METHODS


def generate_transaction_code(now_ms=None):
    """
    Placeholder code for a mobile-money payment entered without one.

    ``TXN`` followed by the millisecond timestamp in base 36, uppercased.
    Not verified against any payment gateway.
    """
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f'TXN{_to_base36(now_ms)}'.upper()
