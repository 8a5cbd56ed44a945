"""
Tests for canteen orders and card verification through the API.

Covers:
- Wallet debit, order and line snapshots created together
- 402 INSUFFICIENT_BALANCE and 403 DAILY_LIMIT_EXCEEDED leave nothing behind
- Cross-school students and items are never reachable
- Parent notification queued after commit, and its failure never fails the order
"""

from sqlalchemy.exc import SQLAlchemyError

from schoolhub.models import NotificationOutbox, PosOrder, Student, WalletTransaction
from schoolhub.services import notification_service


def post_order(client, headers, student_id, items, **extra):
    return client.post("/api/pos/orders", headers=headers, json={"student_id": student_id, "items": items, **extra})


class TestCreateOrder:
    def test_purchase_debits_wallet(self, client, db_session, headers, staff_a, student_a, sandwich_a, juice_a):
        response = post_order(client, headers(staff_a), student_a.id, [
            {"id": sandwich_a.id, "quantity": 1},
            {"id": juice_a.id, "quantity": 3},
        ])

        assert response.status_code == 201
        data = response.json["data"]
        assert data["total_cents"] == 3000
        assert data["status"] == "completed"
        assert data["paid_by_wallet"] is True
        assert len(data["items"]) == 2

        assert db_session.get(Student, student_a.id).wallet_balance_cents == 2000

        txns = db_session.query(WalletTransaction).filter_by(student_id=student_a.id).all()
        assert len(txns) == 1
        assert txns[0].amount_cents == -3000
        assert txns[0].type == "purchase"
        assert data["wallet_txn_id"] == txns[0].id

    def test_second_purchase_insufficient_balance(self, client, db_session, headers, staff_a, student_a, sandwich_a):
        auth = headers(staff_a)
        assert post_order(client, auth, student_a.id, [{"id": sandwich_a.id, "quantity": 2}]).status_code == 201

        response = post_order(client, auth, student_a.id, [{"id": sandwich_a.id, "quantity": 2}])

        assert response.status_code == 402
        assert response.json["error"]["code"] == "INSUFFICIENT_BALANCE"
        assert db_session.get(Student, student_a.id).wallet_balance_cents == 2000
        assert db_session.query(PosOrder).count() == 1
        assert db_session.query(WalletTransaction).count() == 1

    def test_daily_limit_exceeded(self, client, db_session, headers, staff_a, student_a, sandwich_a):
        student_a.daily_spending_limit_cents = 1000
        db_session.commit()

        response = post_order(client, headers(staff_a), student_a.id, [{"id": sandwich_a.id}])

        assert response.status_code == 403
        assert response.json["error"]["code"] == "DAILY_LIMIT_EXCEEDED"
        assert db_session.get(Student, student_a.id).wallet_balance_cents == 5000
        assert db_session.query(PosOrder).count() == 0

    def test_item_ids_alias(self, client, headers, staff_a, student_a, sandwich_a, juice_a):
        response = client.post("/api/pos/orders", headers=headers(staff_a), json={
            "student_id": student_a.id,
            "item_ids": [sandwich_a.id, juice_a.id],
        })

        assert response.status_code == 201
        assert response.json["data"]["total_cents"] == 2000

    def test_price_snapshot_survives_price_change(self, client, db_session, headers, staff_a, student_a, juice_a):
        response = post_order(client, headers(staff_a), student_a.id, [{"id": juice_a.id, "quantity": 2}])
        order_id = response.json["data"]["id"]

        juice_a.price_cents = 900
        db_session.commit()

        order = db_session.get(PosOrder, order_id)
        assert order.items[0].unit_price_cents == 500
        assert order.items[0].line_total_cents == 1000
        assert order.total_cents == 1000

    def test_school_admin_may_sell(self, client, headers, admin_a, student_a, juice_a):
        response = post_order(client, headers(admin_a), student_a.id, [{"id": juice_a.id}])
        assert response.status_code == 201


class TestOrderIsolation:
    def test_cross_school_item_not_found(self, client, db_session, headers, staff_a, student_a, sandwich_a, item_b):
        response = post_order(client, headers(staff_a), student_a.id, [
            {"id": sandwich_a.id},
            {"id": item_b.id},
        ])

        assert response.status_code == 404
        assert response.json["error"]["code"] == "NOT_FOUND"
        assert db_session.query(WalletTransaction).count() == 0
        assert db_session.get(Student, student_a.id).wallet_balance_cents == 5000

    def test_cross_school_student_not_found(self, client, db_session, headers, staff_a, student_b, sandwich_a):
        response = post_order(client, headers(staff_a), student_b.id, [{"id": sandwich_a.id}])

        assert response.status_code == 404
        assert db_session.get(Student, student_b.id).wallet_balance_cents == 5000

    def test_unavailable_item_not_found(self, client, db_session, headers, staff_a, student_a, sandwich_a):
        sandwich_a.is_available = False
        db_session.commit()

        response = post_order(client, headers(staff_a), student_a.id, [{"id": sandwich_a.id}])
        assert response.status_code == 404

    def test_body_school_id_ignored(self, client, headers, staff_a, student_a, sandwich_a, school_a, school_b):
        response = post_order(client, headers(staff_a), student_a.id, [{"id": sandwich_a.id}], school_id=school_b.id)

        assert response.status_code == 201
        assert response.json["data"]["school_id"] == school_a.id

    def test_parent_cannot_sell(self, client, headers, parent_a, student_a, sandwich_a):
        response = post_order(client, headers(parent_a), student_a.id, [{"id": sandwich_a.id}])

        assert response.status_code == 403
        assert response.json["error"]["code"] == "FORBIDDEN_ROLE"


class TestOrderValidation:
    def test_empty_items_rejected(self, client, headers, staff_a, student_a):
        response = post_order(client, headers(staff_a), student_a.id, [])
        assert response.status_code == 400
        assert response.json["error"]["code"] == "VALIDATION_ERROR"

    def test_quantity_over_limit_rejected(self, client, headers, staff_a, student_a, juice_a):
        response = post_order(client, headers(staff_a), student_a.id, [{"id": juice_a.id, "quantity": 51}])
        assert response.status_code == 400

    def test_missing_student_id_rejected(self, client, headers, staff_a, juice_a):
        response = client.post("/api/pos/orders", headers=headers(staff_a), json={"items": [juice_a.id]})
        assert response.status_code == 400


class TestOrderNotifications:
    def test_parent_notification_queued(self, client, db_session, headers, staff_a, student_a, parent_a, juice_a):
        response = post_order(client, headers(staff_a), student_a.id, [{"id": juice_a.id}])
        assert response.status_code == 201

        rows = db_session.query(NotificationOutbox).filter_by(user_id=parent_a.id).all()
        assert len(rows) == 1
        assert rows[0].title == "Canteen Purchase"
        assert rows[0].status == "pending"
        assert rows[0].preference_type == "wallet"

    def test_enqueue_failure_does_not_fail_order(
        self, client, db_session, headers, monkeypatch, staff_a, student_a, juice_a
    ):
        def broken_clock():
            raise SQLAlchemyError("outbox unavailable")

        auth = headers(staff_a)
        monkeypatch.setattr(notification_service, "utcnow", broken_clock)

        response = post_order(client, auth, student_a.id, [{"id": juice_a.id}])

        assert response.status_code == 201
        assert db_session.query(PosOrder).count() == 1
        assert db_session.query(NotificationOutbox).count() == 0
        assert db_session.get(Student, student_a.id).wallet_balance_cents == 4500


class TestOrderListing:
    def test_lists_only_own_school(self, client, headers, staff_a, staff_b, student_a, student_b, juice_a, item_b):
        post_order(client, headers(staff_a), student_a.id, [{"id": juice_a.id}])
        post_order(client, headers(staff_b), student_b.id, [{"id": item_b.id}])

        response = client.get("/api/pos/orders", headers=headers(staff_a))

        assert response.status_code == 200
        assert [o["student_id"] for o in response.json["data"]] == [student_a.id]

    def test_invalid_limit_rejected(self, client, headers, staff_a):
        response = client.get("/api/pos/orders?limit=500", headers=headers(staff_a))
        assert response.status_code == 400


class TestVerifyCard:
    def test_valid_card(self, client, headers, staff_a, student_a):
        response = client.get("/api/pos/verify-card/CARD-A-0001", headers=headers(staff_a))

        assert response.status_code == 200
        assert response.json["data"]["id"] == student_a.id
        assert response.json["data"]["wallet_balance_cents"] == 5000

    def test_card_of_other_school(self, client, headers, staff_a, student_b):
        response = client.get("/api/pos/verify-card/CARD-B-0001", headers=headers(staff_a))

        assert response.status_code == 404
        assert response.json["error"]["message"] == "Card not valid for this school."

    def test_frozen_card(self, client, db_session, headers, staff_a, student_a):
        student_a.is_nfc_active = False
        db_session.commit()

        response = client.get("/api/pos/verify-card/CARD-A-0001", headers=headers(staff_a))

        assert response.status_code == 403
        assert response.json["error"]["code"] == "CARD_FROZEN"

    def test_super_admin_ambiguous_card_needs_school(
        self, client, db_session, headers, super_admin, student_a, school_b
    ):
        twin = Student(school_id=school_b.id, full_name="Hadi Nasser", nfc_card_id=student_a.nfc_card_id)
        db_session.add(twin)
        db_session.commit()
        auth = headers(super_admin)

        response = client.get("/api/pos/verify-card/CARD-A-0001", headers=auth)
        assert response.status_code == 400
        assert response.json["error"]["code"] == "VALIDATION_ERROR"

        response = client.get(f"/api/pos/verify-card/CARD-A-0001?school_id={school_b.id}", headers=auth)
        assert response.status_code == 200
        assert response.json["data"]["id"] == twin.id

    def test_super_admin_unique_card(self, client, headers, super_admin, student_b):
        response = client.get("/api/pos/verify-card/CARD-B-0001", headers=headers(super_admin))

        assert response.status_code == 200
        assert response.json["data"]["id"] == student_b.id


class TestCatalogueAccess:
    def test_parent_can_browse_items(self, client, headers, parent_a, sandwich_a, item_b):
        response = client.get("/api/pos/items", headers=headers(parent_a))

        assert response.status_code == 200
        assert [i["id"] for i in response.json["data"]] == [sandwich_a.id]

    def test_available_filter(self, client, db_session, headers, staff_a, sandwich_a, juice_a):
        juice_a.is_available = False
        db_session.commit()

        response = client.get("/api/pos/items?available=true", headers=headers(staff_a))
        assert [i["id"] for i in response.json["data"]] == [sandwich_a.id]
