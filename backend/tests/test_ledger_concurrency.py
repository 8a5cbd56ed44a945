"""
Concurrency tests for the wallet ledger.

Runs purchases from several threads against a file-backed SQLite database,
each thread with its own app context and session.
"""

import threading

import pytest
from sqlalchemy import func

from schoolhub import create_app
from schoolhub.errors import ApiError
from schoolhub.extensions import db
from schoolhub.models import School, Student, WalletTransaction
from schoolhub.services.concurrency import run_with_retry
from schoolhub.services.ledger_service import TXN_PURCHASE, process_transaction


WORKERS = 4


@pytest.fixture
def file_app(tmp_path):
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': f"sqlite:///{tmp_path / 'concurrency.db'}",
        'SQLALCHEMY_ENGINE_OPTIONS': {'connect_args': {'timeout': 30, 'check_same_thread': False}},
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()

    yield app

    with app.app_context():
        db.session.remove()
        db.drop_all()
        db.engine.dispose()


def seed_student(app, wallet_balance_cents, daily_spending_limit_cents=None):
    with app.app_context():
        school = School(name="Concurrency School", code="CON", is_active=True)
        db.session.add(school)
        db.session.commit()

        student = Student(
            school_id=school.id,
            full_name="Concurrent Student",
            wallet_balance_cents=wallet_balance_cents,
            daily_spending_limit_cents=daily_spending_limit_cents,
        )
        db.session.add(student)
        db.session.commit()
        return school.id, student.id


def run_purchases(app, school_id, student_id, amount_cents):
    results = []
    lock = threading.Lock()
    barrier = threading.Barrier(WORKERS)

    def worker():
        with app.app_context():
            def _op():
                process_transaction(
                    student_id=student_id,
                    school_id=school_id,
                    amount_cents=-amount_cents,
                    txn_type=TXN_PURCHASE,
                )
                db.session.commit()

            try:
                barrier.wait()
                run_with_retry(_op)
                with lock:
                    results.append("ok")
            except ApiError as exc:
                with lock:
                    results.append(exc.code)
            except Exception as exc:
                with lock:
                    results.append(exc)
            finally:
                db.session.remove()

    threads = [threading.Thread(target=worker) for _ in range(WORKERS)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    return results


def wallet_state(app, student_id):
    with app.app_context():
        balance = db.session.get(Student, student_id).wallet_balance_cents
        ledger_sum = (
            db.session.query(func.coalesce(func.sum(WalletTransaction.amount_cents), 0))
            .filter_by(student_id=student_id)
            .scalar()
        )
        return balance, int(ledger_sum)


class TestConcurrentPurchases:
    def test_no_overdraft(self, file_app):
        school_id, student_id = seed_student(file_app, wallet_balance_cents=1000)

        results = run_purchases(file_app, school_id, student_id, 600)

        assert results.count("ok") == 1
        assert results.count("INSUFFICIENT_BALANCE") == WORKERS - 1

        balance, ledger_sum = wallet_state(file_app, student_id)
        assert balance == 400
        assert balance == 1000 + ledger_sum

    def test_daily_limit_holds(self, file_app):
        school_id, student_id = seed_student(
            file_app, wallet_balance_cents=100000, daily_spending_limit_cents=1000
        )

        results = run_purchases(file_app, school_id, student_id, 600)

        assert results.count("ok") == 1
        assert results.count("DAILY_LIMIT_EXCEEDED") == WORKERS - 1

        balance, ledger_sum = wallet_state(file_app, student_id)
        assert -ledger_sum <= 1000
        assert balance == 100000 + ledger_sum

    def test_no_lost_updates(self, file_app):
        school_id, student_id = seed_student(file_app, wallet_balance_cents=10000)

        results = run_purchases(file_app, school_id, student_id, 500)

        assert results == ["ok"] * WORKERS

        balance, ledger_sum = wallet_state(file_app, student_id)
        assert balance == 10000 - 500 * WORKERS
        assert balance == 10000 + ledger_sum
