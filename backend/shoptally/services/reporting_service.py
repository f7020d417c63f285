# Overview: Read-only reports over sales, expenses and stock for one scope (or all of a user's businesses).

"""
All figures are computed through shoptally.finance so legacy and line-item
sales contribute identically. Reports load the scope's rows once and bucket
them in Python; every bucket is a disjoint calendar range.

Category/product breakdowns attribute a sale's own expenses to its lines in
proportion to line revenue, so the group profits add up to the sale profit.
"""

from __future__ import annotations

from datetime import date, datetime, timedelta

from flask import current_app

from ..extensions import db
from ..models import BusinessProfile, Expense, Product, Sale
from ..models.auth import DEFAULT_BUSINESS_ID
from .. import finance
from ..finance import FinancialSummary, GroupStats
from ..validation import from_cents
from shoptally.time_utils import (
    end_of_day,
    month_end,
    month_start,
    parse_iso_datetime,
    shift_months,
    start_of_day,
    to_utc_z,
    utcnow,
)
from .catalog_service import CatalogIndex, load_catalog_index
from .expense_service import query_expenses
from .sales_service import query_sales
from .scope_service import Scope, scoped_query

UNKNOWN_CATEGORY = "Unknown"
TRENDS_LOW_STOCK_LEVEL = 5
TOP_ITEMS_LIMIT = 5
MIN_REPORT_YEAR = 1900
MAX_REPORT_YEAR = 9999

_PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "month": "%Y-%m",
    "year": "%Y",
}


class ReportError(Exception):
    """Raised when report parameters are invalid."""
    pass


def _is_date_only(value: str) -> bool:
    try:
        date.fromisoformat(value.strip())
    except ValueError:
        return False
    return True


def _parse_range(start: str | None, end: str | None) -> tuple[datetime | None, datetime | None]:
    """A date-only `end` covers that whole day."""
    try:
        start_dt = parse_iso_datetime(start) if start else None
        end_dt = parse_iso_datetime(end) if end else None
    except ValueError:
        raise ReportError("Dates must be ISO-8601 (YYYY-MM-DD or YYYY-MM-DDTHH:MM:SS)")
    if end_dt is not None and _is_date_only(end):
        end_dt = end_of_day(end_dt)
    if start_dt and end_dt and start_dt > end_dt:
        raise ReportError("start must not be after end")
    return start_dt, end_dt


def _expense_total(expenses) -> int:
    return sum(e.amount_cents or 0 for e in expenses)


def _in_range(value: datetime | None, start: datetime, end: datetime) -> bool:
    return value is not None and start <= value <= end


def _allocate(total: int, weights: list[int]) -> list[int]:
    """Split `total` cents across weights; the last share takes the rounding remainder."""
    if not weights:
        return []
    weight_sum = sum(weights)
    if weight_sum <= 0:
        shares = [0] * len(weights)
        shares[-1] = total
        return shares
    shares = [total * w // weight_sum for w in weights[:-1]]
    shares.append(total - sum(shares))
    return shares


def _line_category(line, index: CatalogIndex) -> str:
    details = line.product_details or {}
    return details.get("category") or index.category_for(line.item_type, line.item_id) or UNKNOWN_CATEGORY


def _item_key(line) -> str:
    return f"{line.item_type}:{line.item_id}"


def _group_lines(sales, index: CatalogIndex) -> tuple[dict[str, GroupStats], dict[str, GroupStats]]:
    """Per-category and per-item stats; dict order is first-seen order."""
    categories: dict[str, GroupStats] = {}
    items: dict[str, GroupStats] = {}

    for sale in sales:
        lines = finance.normalized_lines(sale)
        expense_shares = _allocate(finance.sale_expenses(sale), [line.line_total_cents for line in lines])

        for line, expense_share in zip(lines, expense_shares):
            profit = line.line_profit_cents - expense_share

            category = _line_category(line, index)
            cat = categories.setdefault(category, GroupStats(key=category, name=category))
            cat.revenue_cents += line.line_total_cents
            cat.cogs_cents += line.line_cogs_cents
            cat.profit_cents += profit
            cat.quantity += line.quantity

            key = _item_key(line)
            item = items.get(key)
            if item is None:
                item = GroupStats(
                    key=key,
                    name=index.name_for(line.item_type, line.item_id) or line.name or "Unknown Product",
                    extra={"itemId": line.item_id, "itemType": line.item_type},
                )
                items[key] = item
            item.revenue_cents += line.line_total_cents
            item.cogs_cents += line.line_cogs_cents
            item.profit_cents += profit
            item.quantity += line.quantity

    return categories, items


def _totals_dict(summary: FinancialSummary, business_expenses_cents: int) -> dict:
    data = summary.to_dict()
    data["businessExpenses"] = from_cents(business_expenses_cents)
    data["netProfit"] = from_cents(summary.gross_profit_cents - business_expenses_cents)
    return data


# ---------------------------------------------------------------------------
# Period report
# ---------------------------------------------------------------------------

def period_report(
    scope: Scope,
    *,
    start: str | None = None,
    end: str | None = None,
    group_by: str = "day",
) -> dict:
    """Revenue, costs and profit bucketed by day, month or year of sale/expense date."""
    fmt = _PERIOD_FORMATS.get(group_by)
    if fmt is None:
        raise ReportError("group_by must be day, month, or year")
    start_dt, end_dt = _parse_range(start, end)

    sales = query_sales(scope, start=start_dt, end=end_dt).order_by(Sale.sale_date.asc()).all()
    expenses = query_expenses(scope, start=start_dt, end=end_dt).all()

    buckets: dict[str, FinancialSummary] = {}
    business_expenses: dict[str, int] = {}
    for sale in sales:
        buckets.setdefault(sale.sale_date.strftime(fmt), FinancialSummary()).add(sale)
    for expense in expenses:
        period = expense.expense_date.strftime(fmt)
        buckets.setdefault(period, FinancialSummary())
        business_expenses[period] = business_expenses.get(period, 0) + (expense.amount_cents or 0)

    rows = []
    for period in sorted(buckets):
        row = {"period": period}
        row.update(_totals_dict(buckets[period], business_expenses.get(period, 0)))
        rows.append(row)

    return {
        "groupBy": group_by,
        "start": to_utc_z(start_dt) if start_dt else None,
        "end": to_utc_z(end_dt) if end_dt else None,
        "totals": _totals_dict(finance.summarize(sales), _expense_total(expenses)),
        "rows": rows,
    }


# ---------------------------------------------------------------------------
# Finance overview
# ---------------------------------------------------------------------------

def finance_overview(
    scope: Scope,
    *,
    view_type: str = "monthly",
    year: int | None = None,
    month: int | None = None,
    now: datetime | None = None,
) -> dict:
    """
    Totals and rankings for one calendar month (monthly) or year (yearly).

    `month` is 1-12 and defaults to the current month. The monthly series
    covers the 6 months ending with the selected month, or the 12 months of
    the selected year.
    """
    if view_type not in ("monthly", "yearly"):
        raise ReportError("viewType must be monthly or yearly")
    now = now or utcnow()
    year = now.year if year is None else year
    month = now.month if month is None else month
    if not 1 <= month <= 12:
        raise ReportError("month must be between 1 and 12")
    if not MIN_REPORT_YEAR <= year <= MAX_REPORT_YEAR:
        raise ReportError(f"year must be between {MIN_REPORT_YEAR} and {MAX_REPORT_YEAR}")

    if view_type == "yearly":
        window_start, window_end = month_start(year, 1), month_end(year, 12)
        series_months = [(year, m) for m in range(1, 13)]
    else:
        window_start, window_end = month_start(year, month), month_end(year, month)
        series_months = []
        for offset in range(-5, 1):
            first = month_start(year, month + offset)
            series_months.append((first.year, first.month))

    fetch_start = min(window_start, month_start(*series_months[0]))
    fetch_end = max(window_end, month_end(*series_months[-1]))

    all_sales = query_sales(scope, start=fetch_start, end=fetch_end).order_by(Sale.sale_date.asc(), Sale.id.asc()).all()
    all_expenses = query_expenses(scope, start=fetch_start, end=fetch_end).all()

    sales = [s for s in all_sales if _in_range(s.sale_date, window_start, window_end)]
    expenses = [e for e in all_expenses if _in_range(e.expense_date, window_start, window_end)]

    categories, items = _group_lines(sales, load_catalog_index(scope))
    category_ranking = finance.rank_by_revenue(categories.values())
    item_ranking = finance.rank_by_revenue(items.values())

    monthly = []
    for y, m in series_months:
        first, last = month_start(y, m), month_end(y, m)
        month_sales = [s for s in all_sales if _in_range(s.sale_date, first, last)]
        month_expenses = [e for e in all_expenses if _in_range(e.expense_date, first, last)]
        row = {"year": y, "month": m}
        row.update(_totals_dict(finance.summarize(month_sales), _expense_total(month_expenses)))
        monthly.append(row)

    data = _totals_dict(finance.summarize(sales), _expense_total(expenses))
    data.update({
        "viewType": view_type,
        "year": year,
        "month": month if view_type == "monthly" else None,
        "topCategory": category_ranking[0].to_dict() if category_ranking else None,
        "topProduct": item_ranking[0].to_dict() if item_ranking else None,
        "categories": [g.to_dict() for g in category_ranking],
        "products": [g.to_dict() for g in item_ranking],
        "monthlyData": monthly,
    })
    return data


# ---------------------------------------------------------------------------
# Trends
# ---------------------------------------------------------------------------

def _inventory_summary(scope: Scope) -> dict:
    products = scoped_query(Product, scope).all()
    return {
        "totalProducts": len(products),
        "totalInventoryValue": from_cents(
            sum(max(p.current_stock or 0, 0) * (p.cost_price_cents or 0) for p in products)
        ),
        "lowStockProducts": sum(1 for p in products if (p.current_stock or 0) <= TRENDS_LOW_STOCK_LEVEL),
    }


def sales_trends(scope: Scope, *, months: int = 12, now: datetime | None = None) -> dict:
    """Month-by-month sales, expense and per-item series since the first day `months` months ago."""
    if months < 1 or months > 120:
        raise ReportError("months must be between 1 and 120")
    now = now or utcnow()
    since = shift_months(now, -months)

    sales = query_sales(scope, start=since).order_by(Sale.sale_date.asc(), Sale.id.asc()).all()
    expenses = query_expenses(scope, start=since).all()

    by_month: dict[tuple[int, int], FinancialSummary] = {}
    item_months: dict[tuple[int, int, str], dict] = {}
    for sale in sales:
        period = (sale.sale_date.year, sale.sale_date.month)
        by_month.setdefault(period, FinancialSummary()).add(sale)
        for line in finance.normalized_lines(sale):
            key = period + (_item_key(line),)
            entry = item_months.setdefault(key, {
                "itemId": line.item_id,
                "itemType": line.item_type,
                "productName": line.name,
                "quantity": 0,
                "revenue_cents": 0,
            })
            entry["quantity"] += line.quantity
            entry["revenue_cents"] += line.line_total_cents

    expense_months: dict[tuple[int, int], list[int]] = {}
    for expense in expenses:
        period = (expense.expense_date.year, expense.expense_date.month)
        bucket = expense_months.setdefault(period, [0, 0])
        bucket[0] += expense.amount_cents or 0
        bucket[1] += 1

    sales_rows = []
    for (y, m) in sorted(by_month):
        summary = by_month[(y, m)]
        sales_rows.append({
            "period": f"{y}-{m:02d}",
            "year": y,
            "month": m,
            "totalRevenue": from_cents(summary.revenue_cents),
            "totalProfit": from_cents(summary.profit_cents),
            "totalExpenses": from_cents(summary.sale_expenses_cents),
            "totalCOGS": from_cents(summary.cogs_cents),
            "salesCount": summary.sales_count,
            "totalUnits": summary.units,
            "averageOrderValue": round(summary.revenue_cents / summary.sales_count / 100, 2)
            if summary.sales_count else 0.0,
            "profitMargin": round(summary.profit_cents * 100 / summary.revenue_cents, 2)
            if summary.revenue_cents else 0.0,
        })

    expense_rows = [
        {
            "period": f"{y}-{m:02d}",
            "year": y,
            "month": m,
            "totalExpenses": from_cents(total),
            "expenseCount": count,
        }
        for (y, m), (total, count) in sorted(expense_months.items())
    ]

    product_rows = []
    for (y, m, _key), entry in sorted(item_months.items(), key=lambda kv: (kv[0][0], kv[0][1])):
        product_rows.append({
            "period": f"{y}-{m:02d}",
            "year": y,
            "month": m,
            "itemId": entry["itemId"],
            "itemType": entry["itemType"],
            "productName": entry["productName"],
            "totalQuantity": entry["quantity"],
            "totalRevenue": from_cents(entry["revenue_cents"]),
        })

    return {
        "months": months,
        "since": to_utc_z(since),
        "salesTrends": sales_rows,
        "expensesTrends": expense_rows,
        "productTrends": product_rows,
        "inventory": _inventory_summary(scope),
    }


# ---------------------------------------------------------------------------
# Dashboard
# ---------------------------------------------------------------------------

def low_stock_threshold(scope: Scope) -> int:
    profile = (
        db.session.query(BusinessProfile)
        .filter_by(user_id=scope.user_id, business_id=scope.business_id)
        .first()
    )
    if profile is not None and profile.low_stock_threshold is not None:
        return profile.low_stock_threshold
    return current_app.config["LOW_STOCK_THRESHOLD"]


def _revenue_profit(sales) -> dict:
    summary = finance.summarize(sales)
    return {"revenue": from_cents(summary.revenue_cents), "profit": from_cents(summary.profit_cents)}


def dashboard_metrics(scope: Scope, *, now: datetime | None = None) -> dict:
    now = now or utcnow()
    today = start_of_day(now)
    week_ago = today - timedelta(days=7)
    month_ago = today - timedelta(days=30)

    sales = query_sales(scope).order_by(Sale.sale_date.asc(), Sale.id.asc()).all()

    threshold = low_stock_threshold(scope)
    low_stock = (
        scoped_query(Product, scope)
        .filter(Product.current_stock <= threshold)
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .all()
    )

    _categories, items = _group_lines(sales, load_catalog_index(scope))
    top_items = finance.rank_by_revenue(items.values())[:TOP_ITEMS_LIMIT]

    return {
        "today": _revenue_profit([s for s in sales if s.sale_date >= today]),
        "week": _revenue_profit([s for s in sales if s.sale_date >= week_ago]),
        "month": _revenue_profit([s for s in sales if s.sale_date >= month_ago]),
        "lowStockThreshold": threshold,
        "lowStockProducts": [p.to_dict() for p in low_stock],
        "topProducts": [g.to_dict() for g in top_items],
    }


def _window_totals(sales, expenses) -> dict:
    summary = finance.summarize(sales)
    return {
        "revenue": from_cents(summary.revenue_cents),
        "profit": from_cents(summary.profit_cents),
        "salesCount": summary.sales_count,
        "expenses": from_cents(_expense_total(expenses)),
    }


def business_overview(user_id: int, *, now: datetime | None = None) -> dict:
    """Today/week/month figures for every business profile a user has, plus totals."""
    now = now or utcnow()
    windows = {
        "today": start_of_day(now),
        "week": now - timedelta(days=7),
        "month": month_start(now.year, now.month),
    }
    earliest = min(windows.values())

    profiles = (
        db.session.query(BusinessProfile)
        .filter_by(user_id=user_id)
        .order_by(BusinessProfile.id.asc())
        .all()
    )
    businesses = [(p.business_id, p.name) for p in profiles]
    if not any(bid == DEFAULT_BUSINESS_ID for bid, _name in businesses):
        businesses.insert(0, (DEFAULT_BUSINESS_ID, "My Business"))

    per_business = []
    totals = {name: {"revenue_cents": 0, "profit_cents": 0, "salesCount": 0, "expenses_cents": 0} for name in windows}
    for business_id, name in businesses:
        scope = Scope(user_id=user_id, business_id=business_id)
        sales = query_sales(scope, start=earliest).all()
        expenses = query_expenses(scope, start=earliest).all()

        entry = {"businessId": business_id, "businessName": name}
        for window, since in windows.items():
            window_sales = [s for s in sales if s.sale_date >= since]
            window_expenses = [e for e in expenses if e.expense_date >= since]
            entry[window] = _window_totals(window_sales, window_expenses)

            summary = finance.summarize(window_sales)
            totals[window]["revenue_cents"] += summary.revenue_cents
            totals[window]["profit_cents"] += summary.profit_cents
            totals[window]["salesCount"] += summary.sales_count
            totals[window]["expenses_cents"] += _expense_total(window_expenses)
        per_business.append(entry)

    return {
        "totals": {
            window: {
                "revenue": from_cents(t["revenue_cents"]),
                "profit": from_cents(t["profit_cents"]),
                "expenses": from_cents(t["expenses_cents"]),
                "salesCount": t["salesCount"],
            }
            for window, t in totals.items()
        },
        "businesses": per_business,
        "businessCount": len(businesses),
    }
