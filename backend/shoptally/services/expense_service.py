# Overview: Business expenses (not tied to a sale); feed net profit in reports.

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Expense
from ..validation import (
    NotFoundError,
    ValidationError,
    parse_optional_datetime,
    parse_optional_text,
    to_cents,
)
from shoptally.time_utils import end_of_day, start_of_day, utcnow
from .concurrency import run_with_retry
from .scope_service import Scope, scoped_query


def _parse_expense_payload(payload, *, partial: bool) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        if not payload.get("category") or not payload.get("description") or payload.get("amount") in (None, ""):
            raise ValidationError("Category, description, and amount are required")

    patch: dict = {}
    if "category" in payload:
        category = parse_optional_text(payload.get("category"), "category", 128)
        if not category:
            raise ValidationError("category cannot be blank")
        patch["category"] = category
    if "description" in payload:
        description = parse_optional_text(payload.get("description"), "description", 512)
        if not description:
            raise ValidationError("description cannot be blank")
        patch["description"] = description
    if "amount" in payload:
        amount_cents = to_cents(payload.get("amount"), "amount")
        if amount_cents <= 0:
            raise ValidationError("Amount must be a positive number")
        patch["amount_cents"] = amount_cents
    if "expenseDate" in payload:
        patch["expense_date"] = parse_optional_datetime(payload.get("expenseDate"), "expenseDate") or utcnow()
    if "receiptUrl" in payload:
        patch["receipt_url"] = parse_optional_text(payload.get("receiptUrl"), "receiptUrl", 1024)
    if "notes" in payload:
        patch["notes"] = parse_optional_text(payload.get("notes"), "notes", 4000)
    return patch


def _load_expense(scope: Scope, expense_id: int) -> Expense:
    expense = scoped_query(Expense, scope).filter(Expense.id == expense_id).first()
    if not expense:
        raise NotFoundError("Expense not found")
    return expense


def create_expense(scope: Scope, payload: dict) -> Expense:
    patch = _parse_expense_payload(payload, partial=False)
    patch.setdefault("expense_date", utcnow())

    def _op():
        expense = Expense(user_id=scope.user_id, business_id=scope.business_id, **patch)
        db.session.add(expense)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def update_expense(scope: Scope, expense_id: int, payload: dict) -> Expense:
    patch = _parse_expense_payload(payload, partial=True)

    def _op():
        expense = _load_expense(scope, expense_id)
        for key, value in patch.items():
            setattr(expense, key, value)
        db.session.commit()
        return expense

    return run_with_retry(_op)


def delete_expense(scope: Scope, expense_id: int) -> None:
    def _op():
        expense = _load_expense(scope, expense_id)
        db.session.delete(expense)
        db.session.commit()

    run_with_retry(_op)


def get_expense(scope: Scope, expense_id: int) -> Expense:
    return _load_expense(scope, expense_id)


def query_expenses(scope: Scope, *, start: datetime | None = None, end: datetime | None = None):
    """Scoped expense query with inclusive [start, end] on expense_date."""
    query = scoped_query(Expense, scope)
    if start is not None:
        query = query.filter(Expense.expense_date >= start)
    if end is not None:
        query = query.filter(Expense.expense_date <= end)
    return query


def list_expenses(
    scope: Scope,
    *,
    start: datetime | None = None,
    end: datetime | None = None,
    category: str | None = None,
) -> list[Expense]:
    """Newest first. start/end are widened to whole days."""
    query = query_expenses(
        scope,
        start=start_of_day(start) if start else None,
        end=end_of_day(end) if end else None,
    )
    if category and category != "all":
        query = query.filter(Expense.category == category)
    return query.order_by(Expense.expense_date.desc(), Expense.id.desc()).all()
