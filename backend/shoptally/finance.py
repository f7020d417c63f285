# Overview: Shape-agnostic revenue / COGS / profit arithmetic over sales.

"""
Every number a report shows about a sale comes from here.

A sale is either shape 1 (legacy scalar columns) or shape 2 (line items).
normalized_lines() is the single place that looks at the shape; everything
else works on LineView. For the same quantities and prices both shapes give
identical results.

All amounts are integer cents.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from shoptally.models.sales import SALE_SHAPE_LEGACY
from shoptally.validation import ITEM_TYPE_PRODUCT, MAX_AMOUNT_CENTS, ValidationError, from_cents


@dataclass(frozen=True)
class LineView:
    item_id: int | None
    item_type: str
    name: str
    quantity: int
    unit_sale_price_cents: int
    unit_cost_price_cents: int
    line_total_cents: int
    product_details: dict | None = None

    @property
    def line_cogs_cents(self) -> int:
        return self.quantity * self.unit_cost_price_cents

    @property
    def line_profit_cents(self) -> int:
        return self.line_total_cents - self.line_cogs_cents


@dataclass(frozen=True)
class SaleTotals:
    total_sales_cents: int
    total_cogs_cents: int
    gross_profit_cents: int
    total_profit_cents: int


@dataclass
class FinancialSummary:
    revenue_cents: int = 0
    cogs_cents: int = 0
    sale_expenses_cents: int = 0
    profit_cents: int = 0
    sales_count: int = 0
    units: int = 0

    @property
    def gross_profit_cents(self) -> int:
        return self.revenue_cents - self.cogs_cents - self.sale_expenses_cents

    def add(self, sale) -> None:
        self.revenue_cents += revenue(sale)
        self.cogs_cents += cogs(sale)
        self.sale_expenses_cents += sale_expenses(sale)
        self.profit_cents += profit(sale)
        self.sales_count += 1
        self.units += quantity(sale)

    def to_dict(self) -> dict:
        return {
            "revenue": from_cents(self.revenue_cents),
            "cogs": from_cents(self.cogs_cents),
            "saleExpenses": from_cents(self.sale_expenses_cents),
            "grossProfit": from_cents(self.gross_profit_cents),
            "profit": from_cents(self.profit_cents),
            "salesCount": self.sales_count,
            "units": self.units,
        }


@dataclass
class GroupStats:
    """Revenue/cost accumulator for one category or catalog item."""
    key: str
    name: str
    revenue_cents: int = 0
    cogs_cents: int = 0
    profit_cents: int = 0
    quantity: int = 0
    extra: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        data = {
            "name": self.name,
            "revenue": from_cents(self.revenue_cents),
            "cogs": from_cents(self.cogs_cents),
            "profit": from_cents(self.profit_cents),
            "quantity": self.quantity,
        }
        data.update(self.extra)
        return data


# ---------------------------------------------------------------------------
# Write time
# ---------------------------------------------------------------------------

def compute_line(quantity: int, unit_sale_price_cents: int, unit_cost_price_cents: int) -> tuple[int, int]:
    """Returns (line_total_cents, line_profit_cents)."""
    line_total = quantity * unit_sale_price_cents
    return line_total, line_total - quantity * unit_cost_price_cents


def compute_totals(lines: Iterable[LineView], sale_expenses_cents: int = 0) -> SaleTotals:
    total_sales = 0
    total_cogs = 0
    for line in lines:
        total_sales += line.line_total_cents
        total_cogs += line.line_cogs_cents
    if abs(total_sales) > MAX_AMOUNT_CENTS:
        raise ValidationError(f"Sale total cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
    gross = total_sales - total_cogs
    return SaleTotals(
        total_sales_cents=total_sales,
        total_cogs_cents=total_cogs,
        gross_profit_cents=gross,
        total_profit_cents=gross - sale_expenses_cents,
    )


# ---------------------------------------------------------------------------
# Read time
# ---------------------------------------------------------------------------

def normalized_lines(sale) -> list[LineView]:
    if sale.shape == SALE_SHAPE_LEGACY:
        if sale.product_id is None or not sale.quantity:
            return []
        unit_price = sale.unit_sale_price_cents or 0
        return [LineView(
            item_id=sale.product_id,
            item_type=ITEM_TYPE_PRODUCT,
            name=sale.product_name or "Unknown Product",
            quantity=sale.quantity,
            unit_sale_price_cents=unit_price,
            unit_cost_price_cents=sale.unit_cost_price_cents or 0,
            line_total_cents=sale.quantity * unit_price,
        )]

    return [
        LineView(
            item_id=item.item_id,
            item_type=item.item_type or ITEM_TYPE_PRODUCT,
            name=item.name,
            quantity=item.quantity or 0,
            unit_sale_price_cents=item.unit_sale_price_cents or 0,
            unit_cost_price_cents=item.unit_cost_price_cents or 0,
            line_total_cents=(
                item.line_total_cents
                if item.line_total_cents is not None
                else (item.quantity or 0) * (item.unit_sale_price_cents or 0)
            ),
            product_details=item.product_details,
        )
        for item in sale.items
    ]


def quantity(sale) -> int:
    return sum(line.quantity for line in normalized_lines(sale))


def revenue(sale) -> int:
    if sale.total_sales_cents is not None:
        return sale.total_sales_cents
    return sum(line.line_total_cents for line in normalized_lines(sale))


def cogs(sale) -> int:
    if sale.total_cogs_cents is not None:
        return sale.total_cogs_cents
    return sum(line.line_cogs_cents for line in normalized_lines(sale))


def sale_expenses(sale) -> int:
    return sale.sale_expenses_cents or 0


def profit(sale) -> int:
    """Persisted total_profit. Derived only for old rows that never stored it."""
    if sale.total_profit_cents is not None:
        return sale.total_profit_cents
    return revenue(sale) - cogs(sale) - sale_expenses(sale)


def display_name(sale) -> str:
    lines = normalized_lines(sale)
    if len(lines) > 1:
        return f"Multi-product sale ({len(lines)} items)"
    if lines:
        return lines[0].name
    return sale.product_name or "Unknown Product"


def summarize(sales: Iterable) -> FinancialSummary:
    summary = FinancialSummary()
    for sale in sales:
        summary.add(sale)
    return summary


def rank_by_revenue(groups: Iterable[GroupStats]) -> list[GroupStats]:
    """Descending revenue. sorted() is stable, so exact ties keep first-seen order."""
    return sorted(groups, key=lambda g: g.revenue_cents, reverse=True)
