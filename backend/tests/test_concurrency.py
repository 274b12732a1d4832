"""
Concurrency tests against a file-backed SQLite database.

Each worker thread pushes its own app context (its own session and
connection), the way concurrent requests do. Covers:
- order id allocation under concurrent creators (unique constraint + retry)
- coupon redemption under concurrent redeemers (conditional UPDATE)
"""

import threading

import pytest

from conftest import TEST_DATA_KEY, purchase_payload
from resaledesk import create_app, get_vault
from resaledesk.extensions import db
from resaledesk.models import Coupon
from resaledesk.services import coupon_service, purchase_service
from resaledesk.time_utils import utcnow
from resaledesk.validation import ConflictError, ValidationError


@pytest.fixture
def file_app(tmp_path):
    db_path = tmp_path / "desk.sqlite3"
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{db_path}",
        'SQLALCHEMY_ENGINE_OPTIONS': {"connect_args": {"timeout": 30, "check_same_thread": False}},
        'DATA_KEY': TEST_DATA_KEY,
        'ORDER_ID_PREFIX': 'PH',
        'ORDER_ID_MAX_ATTEMPTS': 10,
    })
    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def _run_workers(target, count):
    barrier = threading.Barrier(count)

    def _start():
        barrier.wait()
        target()

    threads = [threading.Thread(target=_start) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()


class TestConcurrentCreators:
    def test_order_ids_unique_and_gapless(self, file_app):
        vault = get_vault(file_app)
        created = []
        errors = []
        lock = threading.Lock()

        def worker():
            with file_app.app_context():
                try:
                    purchase = purchase_service.create_purchase(purchase_payload(), "user-1", vault)
                    with lock:
                        created.append(purchase.order_id)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        _run_workers(worker, 4)

        assert not errors, f"Errors: {errors}"
        assert len(created) == len(set(created))
        year = utcnow().year
        assert set(created) == {f"PH-{year}-{n:05d}" for n in range(1, 5)}


class TestConcurrentRedeemers:
    def test_usage_limit_never_exceeded(self, file_app):
        with file_app.app_context():
            coupon_service.create_coupon({
                "code": "TWICE",
                "discount_type": "PERCENT",
                "discount_value": 1000,
                "max_uses": 2,
            })
            db.session.remove()

        redeemed = []
        refused = []
        errors = []
        lock = threading.Lock()

        def worker():
            with file_app.app_context():
                try:
                    result = coupon_service.redeem_coupon("TWICE", 50000)
                    with lock:
                        redeemed.append(result["discount_minor"])
                except (ValidationError, ConflictError) as exc:
                    with lock:
                        refused.append(exc)
                except Exception as exc:
                    with lock:
                        errors.append(exc)
                finally:
                    db.session.remove()

        _run_workers(worker, 6)

        assert not errors, f"Errors: {errors}"
        assert redeemed == [5000, 5000]
        assert len(refused) == 4

        with file_app.app_context():
            assert db.session.query(Coupon).filter_by(code="TWICE").one().used_count == 2
            db.session.remove()
