"""
Sales Service - record, edit and delete sales with their stock effects

Every write runs as a single DB transaction through run_with_retry:

    create:  build lines -> insert sale -> apply(-qty per product line)
    update:  reverse(old lines) -> build new lines against the released stock
             -> apply(-qty per new product line) -> replace lines/totals
    delete:  reverse(old lines) -> delete sale

reverse() and apply() are the only stock operations; an edit is always
"undo the old sale, then record the new one", never a diff. Input is
validated before the transaction starts, so malformed requests never touch
stock. Any failure after stock moved rolls the whole transaction back.

New writes always produce line-item sales. Legacy single-product rows are
still readable, reversible and editable; editing one rewrites it as a
line-item sale.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

from flask import current_app

from ..extensions import db
from ..models import Sale, SaleLineItem, SALE_SHAPE_LINE_ITEMS
from .. import finance
from ..finance import LineView
from ..validation import (
    ITEM_TYPE_PRODUCT,
    ITEM_TYPE_SERVICE,
    ITEM_TYPES,
    MAX_AMOUNT_CENTS,
    InsufficientStockError,
    NotFoundError,
    ValidationError,
    from_cents,
    parse_expense_details,
    parse_id,
    parse_optional_cents,
    parse_optional_datetime,
    parse_optional_text,
    parse_quantity,
    to_cents,
)
from shoptally.time_utils import end_of_day, start_of_day, utcnow
from . import catalog_service, stock_service
from .concurrency import lock_for_update, run_with_retry
from .scope_service import Scope, scoped_query


@dataclass
class LineInput:
    item_id: int
    item_type: str
    quantity: int
    unit_sale_price_cents: int
    # Legacy payloads may rename the product on the sale
    name_override: str | None = None


@dataclass
class SaleInput:
    lines: list[LineInput]
    customer_name: str | None = None
    sale_date: datetime | None = None
    notes: str | None = None
    sale_expenses_cents: int = 0
    sale_expense_details: list[dict] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Payload parsing (no DB access)
# ---------------------------------------------------------------------------

def _parse_line(raw: dict) -> LineInput:
    if not isinstance(raw, dict):
        raise ValidationError("Each item must be an object")

    item_id = raw.get("itemId", raw.get("productId"))
    qty = raw.get("quantity")
    price = raw.get("unitSalePrice", raw.get("unitPrice"))
    if item_id in (None, "") or qty in (None, "") or price in (None, ""):
        raise ValidationError("Each item must have itemId, quantity, and unitSalePrice")

    item_type = raw.get("itemType") or ITEM_TYPE_PRODUCT
    if item_type not in ITEM_TYPES:
        raise ValidationError(f"itemType must be one of: {', '.join(ITEM_TYPES)}")

    line = LineInput(
        item_id=parse_id(item_id, "item ID"),
        item_type=item_type,
        quantity=parse_quantity(qty),
        unit_sale_price_cents=to_cents(price, "unitSalePrice"),
    )
    if line.item_type == ITEM_TYPE_PRODUCT and line.unit_sale_price_cents < 0:
        raise ValidationError("Price cannot be negative")
    return line


def _parse_legacy_line(payload: dict) -> LineInput:
    product_id = payload.get("productId")
    qty = payload.get("quantitySold")
    price = payload.get("unitPrice")
    if product_id in (None, "") or qty in (None, "") or price in (None, ""):
        raise ValidationError("Product ID, quantity sold, and unit price are required")

    unit_price_cents = to_cents(price, "unitPrice")
    if unit_price_cents < 0:
        raise ValidationError("Price cannot be negative")

    return LineInput(
        item_id=parse_id(product_id, "product ID"),
        item_type=ITEM_TYPE_PRODUCT,
        quantity=parse_quantity(qty, "quantitySold"),
        unit_sale_price_cents=unit_price_cents,
        name_override=parse_optional_text(payload.get("productName"), "productName", 255),
    )


def parse_sale_payload(payload) -> SaleInput:
    """
    Accepts either {items: [...]} or the legacy {productId, quantitySold, unitPrice}.

    A non-empty `items` list wins when both are present.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("items")
    if items is not None and not isinstance(items, list):
        raise ValidationError("items must be a list")

    if items:
        lines = [_parse_line(raw) for raw in items]
    elif payload.get("productId") not in (None, ""):
        lines = [_parse_legacy_line(payload)]
    else:
        raise ValidationError("At least one item is required")

    details = parse_expense_details(payload.get("saleExpenseDetails"))
    if payload.get("saleExpenses") in (None, ""):
        expenses_cents = sum(d["amount_cents"] for d in details)
    else:
        expenses_cents = parse_optional_cents(payload.get("saleExpenses"), "saleExpenses")

    return SaleInput(
        lines=lines,
        customer_name=parse_optional_text(payload.get("customerName"), "customerName", 255),
        sale_date=parse_optional_datetime(payload.get("saleDate"), "saleDate"),
        notes=parse_optional_text(payload.get("notes"), "notes", 4000),
        sale_expenses_cents=expenses_cents,
        sale_expense_details=details,
    )


# ---------------------------------------------------------------------------
# Line resolution and stock
# ---------------------------------------------------------------------------

def _check_availability(scope: Scope, lines: list[LineInput]) -> None:
    """
    Advisory pre-check against current stock, summed per product.

    The authoritative guard is the conditional decrement in stock_service;
    this gives the caller a complete list of shortfalls up front.
    """
    requested: dict[int, int] = {}
    for line in lines:
        if line.item_type == ITEM_TYPE_PRODUCT:
            requested[line.item_id] = requested.get(line.item_id, 0) + line.quantity

    insufficient = []
    for product_id, qty in requested.items():
        product = catalog_service.get_product(scope, product_id)
        if product.current_stock < qty:
            insufficient.append({
                "product_id": product_id,
                "name": product.name,
                "requested_quantity": qty,
                "on_hand": product.current_stock,
            })

    if insufficient:
        first = insufficient[0]
        raise InsufficientStockError(
            f"Insufficient stock for product {first['name']}. "
            f"Available: {first['on_hand']}, Requested: {first['requested_quantity']}",
            details={"items": insufficient},
        )


def _build_lines(scope: Scope, sale_input: SaleInput) -> list[LineView]:
    """Resolve catalog items, snapshot name/cost/details, compute line totals."""
    built = []
    for line in sale_input.lines:
        item = catalog_service.resolve_item(scope, line.item_id, line.item_type)

        if line.item_type == ITEM_TYPE_SERVICE:
            unit_cost = 0
            details = {"category": item.category, "customFields": item.custom_fields or {}}
        else:
            unit_cost = item.cost_price_cents or 0
            details = item.catalog_details()

        line_total, _ = finance.compute_line(line.quantity, line.unit_sale_price_cents, unit_cost)
        if abs(line_total) > MAX_AMOUNT_CENTS:
            raise ValidationError(f"Line total for {item.name} cannot exceed {MAX_AMOUNT_CENTS / 100:,.2f}")
        built.append(LineView(
            item_id=item.id,
            item_type=line.item_type,
            name=line.name_override or item.name,
            quantity=line.quantity,
            unit_sale_price_cents=line.unit_sale_price_cents,
            unit_cost_price_cents=unit_cost,
            line_total_cents=line_total,
            product_details=details,
        ))

    _check_availability(scope, sale_input.lines)
    return built


def _stock_deltas(lines: list[LineView], sign: int) -> dict[int, int]:
    deltas: dict[int, int] = {}
    for line in lines:
        if catalog_service.is_product(line.item_type) and line.item_id is not None:
            deltas[line.item_id] = deltas.get(line.item_id, 0) + sign * line.quantity
    return deltas


def _apply(lines: list[LineView]) -> None:
    stock_service.apply_deltas(_stock_deltas(lines, sign=-1))


def _reverse(sale: Sale) -> None:
    """Give back the stock a persisted sale (either shape) took."""
    for product_id, delta in sorted(_stock_deltas(finance.normalized_lines(sale), sign=1).items()):
        try:
            stock_service.adjust(product_id, delta)
        except NotFoundError:
            # Product was removed from the catalog after the sale; nothing to restore
            current_app.logger.warning(
                "Skipping stock reversal for missing product_id=%s sale_id=%s", product_id, sale.id
            )


def _write_lines(sale: Sale, lines: list[LineView]) -> None:
    sale.items.clear()
    for position, line in enumerate(lines):
        sale.items.append(SaleLineItem(
            position=position,
            item_id=line.item_id,
            item_type=line.item_type,
            name=line.name,
            quantity=line.quantity,
            unit_sale_price_cents=line.unit_sale_price_cents,
            unit_cost_price_cents=line.unit_cost_price_cents,
            line_total_cents=line.line_total_cents,
            line_profit_cents=line.line_profit_cents,
            product_details=line.product_details,
        ))


def _write_totals(sale: Sale, lines: list[LineView], sale_input: SaleInput) -> None:
    totals = finance.compute_totals(lines, sale_input.sale_expenses_cents)
    sale.shape = SALE_SHAPE_LINE_ITEMS
    sale.sale_expenses_cents = sale_input.sale_expenses_cents
    sale.sale_expense_details = sale_input.sale_expense_details
    sale.total_sales_cents = totals.total_sales_cents
    sale.total_cogs_cents = totals.total_cogs_cents
    sale.total_profit_cents = totals.total_profit_cents

    # Legacy scalar columns belong to shape 1 only
    sale.product_id = None
    sale.product_name = None
    sale.quantity = None
    sale.unit_sale_price_cents = None
    sale.unit_cost_price_cents = None


def _load_sale(scope: Scope, sale_id: int, *, lock: bool = False) -> Sale:
    query = scoped_query(Sale, scope).filter(Sale.id == sale_id)
    if lock:
        query = lock_for_update(query)
    sale = query.first()
    if not sale:
        raise NotFoundError("Sale not found")
    return sale


# ---------------------------------------------------------------------------
# Public operations
# ---------------------------------------------------------------------------

def sale_summary(sale: Sale) -> dict:
    return {
        "saleId": sale.id,
        "totalSales": from_cents(finance.revenue(sale)),
        "totalCogs": from_cents(finance.cogs(sale)),
        "totalProfit": from_cents(finance.profit(sale)),
        "itemCount": len(finance.normalized_lines(sale)),
    }


def create_sale(scope: Scope, payload: dict) -> Sale:
    """Record a new sale and take its products out of stock."""
    sale_input = parse_sale_payload(payload)

    def _op():
        lines = _build_lines(scope, sale_input)

        sale = Sale(
            user_id=scope.user_id,
            business_id=scope.business_id,
            customer_name=sale_input.customer_name,
            sale_date=sale_input.sale_date or utcnow(),
            notes=sale_input.notes,
        )
        _write_totals(sale, lines, sale_input)
        _write_lines(sale, lines)
        db.session.add(sale)
        db.session.flush()

        _apply(lines)

        db.session.commit()
        current_app.logger.info(
            "Sale %s recorded user_id=%s business_id=%s lines=%d",
            sale.id, scope.user_id, scope.business_id, len(lines),
        )
        return sale

    return run_with_retry(_op)


def update_sale(scope: Scope, sale_id: int, payload: dict) -> Sale:
    """
    Replace a sale's lines, prices, expenses and metadata.

    The old lines' stock is released before the new quantities are checked,
    so raising a line from 3 to 5 needs only 2 more units on hand.
    """
    sale_input = parse_sale_payload(payload)

    def _op():
        sale = _load_sale(scope, sale_id, lock=True)

        _reverse(sale)

        lines = _build_lines(scope, sale_input)
        _apply(lines)

        sale.customer_name = sale_input.customer_name
        sale.notes = sale_input.notes
        if sale_input.sale_date is not None:
            sale.sale_date = sale_input.sale_date
        _write_totals(sale, lines, sale_input)
        _write_lines(sale, lines)

        db.session.commit()
        current_app.logger.info("Sale %s updated user_id=%s", sale.id, scope.user_id)
        return sale

    return run_with_retry(_op)


def delete_sale(scope: Scope, sale_id: int) -> None:
    """Return a sale's products to stock and remove it."""
    def _op():
        sale = _load_sale(scope, sale_id, lock=True)
        _reverse(sale)
        db.session.delete(sale)
        db.session.commit()
        current_app.logger.info("Sale %s deleted user_id=%s", sale_id, scope.user_id)

    run_with_retry(_op)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------

def enrich_sale(sale: Sale, cache: dict | None = None) -> dict:
    """
    Sale as JSON with catalog attributes joined per line.

    Lines carry a snapshot from sale time; lines and legacy sales without one
    fall back to the live product. The stored row is never modified.
    """
    data = sale.to_dict()
    data["displayName"] = finance.display_name(sale)
    data["totalQuantity"] = finance.quantity(sale)
    data["totalSales"] = from_cents(finance.revenue(sale))
    data["totalCogs"] = from_cents(finance.cogs(sale))
    data["totalProfit"] = from_cents(finance.profit(sale))

    if sale.is_legacy:
        data["product"] = catalog_service.live_product_details(sale.product_id, cache)
        return data

    for item in data["items"]:
        if item.get("productDetails") is None and catalog_service.is_product(item.get("itemType")):
            item["productDetails"] = catalog_service.live_product_details(item.get("itemId"), cache)
    return data


def get_sale(scope: Scope, sale_id: int) -> dict:
    return enrich_sale(_load_sale(scope, sale_id))


def query_sales(
    scope: Scope,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    item_id: int | None = None,
):
    """Scoped sale query with inclusive [start, end] on sale_date; item_id matches Product lines only."""
    query = scoped_query(Sale, scope)
    if start is not None:
        query = query.filter(Sale.sale_date >= start)
    if end is not None:
        query = query.filter(Sale.sale_date <= end)
    if item_id is not None:
        query = query.filter(db.or_(
            Sale.product_id == item_id,
            Sale.items.any(db.and_(
                SaleLineItem.item_id == item_id,
                SaleLineItem.item_type == ITEM_TYPE_PRODUCT,
            )),
        ))
    return query


def list_sales(
    scope: Scope,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    item_id: int | None = None,
    limit: int = 50,
    offset: int = 0,
) -> list[dict]:
    """
    Newest first. start/end are widened to whole days (00:00:00 .. 23:59:59.999999).
    """
    query = query_sales(
        scope,
        start=start_of_day(start) if start else None,
        end=end_of_day(end) if end else None,
        item_id=item_id,
    )
    sales = (
        query.order_by(Sale.sale_date.desc(), Sale.id.desc())
        .offset(max(offset, 0))
        .limit(max(min(limit, 500), 1))
        .all()
    )
    cache: dict = {}
    return [enrich_sale(sale, cache) for sale in sales]
