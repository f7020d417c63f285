from datetime import datetime

import pytest

from shoptally.services import expense_service
from shoptally.services.scope_service import Scope
from shoptally.validation import NotFoundError, ValidationError


def _payload(**overrides):
    data = {
        "category": "Rent",
        "description": "March rent",
        "amount": "1200.00",
        "expenseDate": "2026-03-01T09:00:00Z",
    }
    data.update(overrides)
    return data


class TestExpenseCrud:

    def test_create_and_get(self, db_session, scope):
        expense = expense_service.create_expense(scope, _payload(notes="paid by transfer"))

        fetched = expense_service.get_expense(scope, expense.id)
        assert fetched.amount_cents == 120000
        assert fetched.expense_date == datetime(2026, 3, 1, 9, 0, 0)
        assert fetched.to_dict()["amount"] == 1200.0
        assert fetched.to_dict()["notes"] == "paid by transfer"

    def test_update(self, db_session, scope):
        expense = expense_service.create_expense(scope, _payload())
        updated = expense_service.update_expense(scope, expense.id, {"amount": 99.5, "category": "Utilities"})

        assert updated.amount_cents == 9950
        assert updated.category == "Utilities"
        assert updated.description == "March rent"

    def test_delete(self, db_session, scope):
        expense = expense_service.create_expense(scope, _payload())
        expense_service.delete_expense(scope, expense.id)
        with pytest.raises(NotFoundError):
            expense_service.get_expense(scope, expense.id)

    @pytest.mark.parametrize("amount", [0, -5, "abc", 1e30, "1e30"])
    def test_amount_must_be_positive_number(self, db_session, scope, amount):
        with pytest.raises(ValidationError):
            expense_service.create_expense(scope, _payload(amount=amount))

    def test_required_fields(self, db_session, scope):
        with pytest.raises(ValidationError):
            expense_service.create_expense(scope, {"amount": 10})

    def test_blank_category_on_update(self, db_session, scope):
        expense = expense_service.create_expense(scope, _payload())
        with pytest.raises(ValidationError):
            expense_service.update_expense(scope, expense.id, {"category": "  "})

    def test_other_user_cannot_read(self, db_session, scope, other_owner):
        expense = expense_service.create_expense(scope, _payload())
        with pytest.raises(NotFoundError):
            expense_service.get_expense(Scope(user_id=other_owner.id), expense.id)


class TestListExpenses:

    def test_filters(self, db_session, scope):
        expense_service.create_expense(scope, _payload(expenseDate="2026-03-01T09:00:00Z"))
        expense_service.create_expense(scope, _payload(category="Utilities", expenseDate="2026-03-05T23:30:00Z"))
        expense_service.create_expense(scope, _payload(expenseDate="2026-03-09T09:00:00Z"))

        all_rows = expense_service.list_expenses(scope)
        assert [e.expense_date.day for e in all_rows] == [9, 5, 1]

        march_5 = expense_service.list_expenses(scope, start=datetime(2026, 3, 5), end=datetime(2026, 3, 5))
        assert [e.category for e in march_5] == ["Utilities"]

        assert len(expense_service.list_expenses(scope, category="Rent")) == 2
        assert len(expense_service.list_expenses(scope, category="all")) == 3
