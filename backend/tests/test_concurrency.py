import pytest
from sqlalchemy.exc import OperationalError

from shoptally.services import concurrency, stock_service
from shoptally.validation import StorageUnavailableError, ValidationError


def _locked():
    return OperationalError("UPDATE products", {}, Exception("database is locked"))


@pytest.fixture
def sleeps(monkeypatch):
    calls = []
    monkeypatch.setattr(concurrency.time, "sleep", calls.append)
    return calls


class TestRunWithRetry:

    def test_gives_up_as_storage_unavailable(self, db_session, product, sleeps):
        attempts = []

        def _op():
            attempts.append(stock_service.get_stock(product.id))
            stock_service.adjust(product.id, -3)
            raise _locked()

        with pytest.raises(StorageUnavailableError):
            concurrency.run_with_retry(_op, attempts=3, backoff_base=0.1)

        # Every attempt starts from rolled-back stock
        assert attempts == [10, 10, 10]
        assert sleeps == [0.1, 0.2]
        assert stock_service.get_stock(product.id) == 10

    def test_recovers_after_transient_failure(self, db_session, product, sleeps):
        attempts = []

        def _op():
            attempts.append(1)
            stock_service.adjust(product.id, -3)
            if len(attempts) == 1:
                raise _locked()
            db_session.commit()
            return "done"

        assert concurrency.run_with_retry(_op) == "done"
        assert len(attempts) == 2
        assert stock_service.get_stock(product.id) == 7

    def test_domain_errors_are_not_retried(self, db_session, product, sleeps):
        attempts = []

        def _op():
            attempts.append(1)
            stock_service.adjust(product.id, -3)
            raise ValidationError("bad input")

        with pytest.raises(ValidationError):
            concurrency.run_with_retry(_op)

        assert attempts == [1]
        assert sleeps == []
        assert stock_service.get_stock(product.id) == 10
