import pytest

from shoptally.models import Product
from shoptally.services import stock_service
from shoptally.validation import InsufficientStockError, NotFoundError


class TestAdjust:

    def test_decrement_within_stock(self, db_session, product):
        stock_service.adjust(product.id, -4)
        db_session.commit()
        assert stock_service.get_stock(product.id) == 6

    def test_decrement_to_exactly_zero(self, db_session, product):
        stock_service.adjust(product.id, -10)
        db_session.commit()
        assert stock_service.get_stock(product.id) == 0

    def test_decrement_past_zero_is_rejected(self, db_session, product):
        with pytest.raises(InsufficientStockError) as exc:
            stock_service.adjust(product.id, -11)
        db_session.rollback()

        assert exc.value.details["on_hand"] == 10
        assert exc.value.details["requested_quantity"] == 11
        assert db_session.get(Product, product.id).current_stock == 10

    def test_increment_is_unconditional(self, db_session, product):
        stock_service.adjust(product.id, 5)
        db_session.commit()
        assert stock_service.get_stock(product.id) == 15

    def test_unknown_product(self, db_session, owner):
        with pytest.raises(NotFoundError):
            stock_service.adjust(999999, -1)

    def test_zero_delta_is_noop(self, db_session, product):
        stock_service.adjust(product.id, 0)
        assert stock_service.get_stock(product.id) == 10

    def test_apply_deltas(self, db_session, product, second_product):
        stock_service.apply_deltas({second_product.id: -5, product.id: -2})
        db_session.commit()
        assert stock_service.get_stock(product.id) == 8
        assert stock_service.get_stock(second_product.id) == 15
