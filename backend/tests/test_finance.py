"""Revenue/COGS/profit arithmetic across both sale shapes."""

from shoptally import finance
from shoptally.finance import GroupStats, LineView
from shoptally.models import Sale, SaleLineItem, SALE_SHAPE_LEGACY, SALE_SHAPE_LINE_ITEMS


def _legacy(quantity, price_cents, cost_cents, expenses_cents=0, **totals):
    return Sale(
        shape=SALE_SHAPE_LEGACY,
        product_id=1,
        product_name="Mug",
        quantity=quantity,
        unit_sale_price_cents=price_cents,
        unit_cost_price_cents=cost_cents,
        sale_expenses_cents=expenses_cents,
        **totals,
    )


def _line_sale(lines, expenses_cents=0, **totals):
    sale = Sale(shape=SALE_SHAPE_LINE_ITEMS, sale_expenses_cents=expenses_cents, **totals)
    for position, (item_id, qty, price, cost) in enumerate(lines):
        total, profit = finance.compute_line(qty, price, cost)
        sale.items.append(SaleLineItem(
            position=position,
            item_id=item_id,
            item_type="Product",
            name=f"Item {item_id}",
            quantity=qty,
            unit_sale_price_cents=price,
            unit_cost_price_cents=cost,
            line_total_cents=total,
            line_profit_cents=profit,
        ))
    return sale


class TestComputeTotals:

    def test_two_lines(self):
        lines = [
            LineView(1, "Product", "A", 2, 1000, 400, 2000),
            LineView(2, "Product", "B", 1, 500, 200, 500),
        ]
        totals = finance.compute_totals(lines)
        assert totals.total_sales_cents == 2500
        assert totals.total_cogs_cents == 1000
        assert totals.total_profit_cents == 1500

    def test_sale_expenses_reduce_profit(self):
        lines = [LineView(1, "Product", "A", 3, 1000, 400, 3000)]
        totals = finance.compute_totals(lines, sale_expenses_cents=250)
        assert totals.gross_profit_cents == 1800
        assert totals.total_profit_cents == 1550

    def test_service_line_has_zero_cost(self):
        line = LineView(7, "Service", "Wrap", 2, 300, 0, 600)
        assert line.line_cogs_cents == 0
        assert line.line_profit_cents == line.line_total_cents

    def test_compute_line(self):
        assert finance.compute_line(3, 1000, 400) == (3000, 1800)


class TestShapeEquivalence:

    def test_same_numbers_for_both_shapes(self):
        legacy = _legacy(3, 1000, 400, expenses_cents=100)
        modern = _line_sale([(1, 3, 1000, 400)], expenses_cents=100)

        assert finance.revenue(legacy) == finance.revenue(modern) == 3000
        assert finance.cogs(legacy) == finance.cogs(modern) == 1200
        assert finance.profit(legacy) == finance.profit(modern) == 1700
        assert finance.quantity(legacy) == finance.quantity(modern) == 3

    def test_persisted_totals_win(self):
        sale = _legacy(3, 1000, 400, total_sales_cents=3000, total_cogs_cents=1200, total_profit_cents=999)
        assert finance.profit(sale) == 999

    def test_legacy_without_product_has_no_lines(self):
        sale = Sale(shape=SALE_SHAPE_LEGACY, product_id=None, quantity=None)
        assert finance.normalized_lines(sale) == []
        assert finance.revenue(sale) == 0


class TestDisplayName:

    def test_single_line_uses_item_name(self):
        assert finance.display_name(_legacy(1, 100, 50)) == "Mug"

    def test_multi_line(self):
        sale = _line_sale([(1, 1, 100, 50), (2, 1, 100, 50), (3, 1, 100, 50)])
        assert finance.display_name(sale) == "Multi-product sale (3 items)"


class TestSummaries:

    def test_summarize_mixed_shapes(self):
        summary = finance.summarize([
            _legacy(2, 1000, 400),
            _line_sale([(1, 1, 1000, 400), (2, 2, 500, 200)], expenses_cents=300),
        ])
        assert summary.revenue_cents == 4000
        assert summary.cogs_cents == 1600
        assert summary.sale_expenses_cents == 300
        assert summary.profit_cents == 2100
        assert summary.sales_count == 2
        assert summary.units == 5
        assert summary.to_dict()["revenue"] == 40.0

    def test_rank_by_revenue_keeps_first_seen_on_tie(self):
        a = GroupStats(key="a", name="A", revenue_cents=100)
        b = GroupStats(key="b", name="B", revenue_cents=150)
        c = GroupStats(key="c", name="C", revenue_cents=100)
        ranked = finance.rank_by_revenue([a, b, c])
        assert [g.key for g in ranked] == ["b", "a", "c"]
