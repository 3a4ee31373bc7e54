from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional

TWO_PLACES = Decimal("0.01")


def to_money(value) -> Decimal:
    return Decimal(str(value)).quantize(TWO_PLACES, rounding=ROUND_HALF_UP)


def to_minor_units(amount) -> int:
    """Amount in paise/cents as gateways expect it"""
    return int((to_money(amount) * 100).to_integral_value(rounding=ROUND_HALF_UP))


@dataclass(frozen=True)
class CartLine:
    product_id: int
    product_name: str
    unit_price: float
    quantity: int
    weight_kg: Optional[float] = None

    @property
    def line_total(self) -> float:
        return float(to_money(Decimal(str(self.unit_price)) * self.quantity))


@dataclass(frozen=True)
class Totals:
    subtotal: float
    tax: float
    shipping: float
    total: float

    @property
    def total_minor_units(self) -> int:
        return to_minor_units(self.total)


def compute_totals(lines: Iterable[CartLine], tax_rate: float, shipping_cost: float = 0.0) -> Totals:
    """
    subtotal = sum(price x qty), tax = subtotal x tax_rate,
    total = subtotal + tax + shipping. Every figure is rounded to 2 dp
    before it is summed so stored items always add up to the total.
    """
    subtotal = sum(
        (to_money(Decimal(str(line.unit_price)) * line.quantity) for line in lines),
        Decimal("0.00"),
    )
    tax = to_money(subtotal * Decimal(str(tax_rate)))
    shipping = to_money(shipping_cost)
    total = subtotal + tax + shipping

    return Totals(
        subtotal=float(subtotal),
        tax=float(tax),
        shipping=float(shipping),
        total=float(total),
    )


DEFAULT_ITEM_WEIGHT_KG = 0.5


def total_weight(lines: List[CartLine]) -> float:
    weight = sum(
        (line.weight_kg or DEFAULT_ITEM_WEIGHT_KG) * line.quantity for line in lines
    )
    return round(max(weight, DEFAULT_ITEM_WEIGHT_KG), 2)
