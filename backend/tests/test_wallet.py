"""
Tests for wallet top-ups, manual adjustments and history access.
"""

import json

from schoolhub.models import AuditLog, NotificationOutbox, Student, WalletTransaction


def topup(client, headers, student_id, amount_cents):
    return client.post("/api/finance/wallet/topup", headers=headers, json={
        "student_id": student_id,
        "amount_cents": amount_cents,
    })


class TestTopup:
    def test_parent_tops_up_own_child(self, client, db_session, headers, parent_a, student_a):
        response = topup(client, headers(parent_a), student_a.id, 2000)

        assert response.status_code == 200
        data = response.json["data"]
        assert data["wallet_balance_cents"] == 7000
        assert data["transaction"]["type"] == "topup"
        assert data["transaction"]["amount_cents"] == 2000

        assert db_session.get(Student, student_a.id).wallet_balance_cents == 7000

    def test_parent_cannot_top_up_other_child(self, client, db_session, headers, other_parent_a, student_a):
        response = topup(client, headers(other_parent_a), student_a.id, 2000)

        assert response.status_code == 403
        assert response.json["error"]["code"] == "TENANT_FORBIDDEN"
        assert db_session.get(Student, student_a.id).wallet_balance_cents == 5000

    def test_admin_cannot_top_up_other_school(self, client, db_session, headers, admin_a, student_b):
        response = topup(client, headers(admin_a), student_b.id, 2000)

        assert response.status_code == 404
        assert db_session.query(WalletTransaction).count() == 0

    def test_amount_over_maximum_rejected(self, client, app, headers, parent_a, student_a):
        response = topup(client, headers(parent_a), student_a.id, app.config["MAX_TOPUP_CENTS"] + 1)
        assert response.status_code == 400

    def test_non_positive_amount_rejected(self, client, headers, parent_a, student_a):
        assert topup(client, headers(parent_a), student_a.id, 0).status_code == 400
        assert topup(client, headers(parent_a), student_a.id, "ten").status_code == 400

    def test_canteen_staff_cannot_top_up(self, client, headers, staff_a, student_a):
        response = topup(client, headers(staff_a), student_a.id, 100)
        assert response.status_code == 403
        assert response.json["error"]["code"] == "FORBIDDEN_ROLE"

    def test_topup_audited_and_notified(self, client, db_session, headers, admin_a, parent_a, student_a):
        topup(client, headers(admin_a), student_a.id, 1500)

        entry = db_session.query(AuditLog).filter_by(action_type="WALLET_TOPUP").one()
        details = json.loads(entry.details)
        assert details["student_id"] == student_a.id
        assert details["new_balance_cents"] == 6500

        outbox = db_session.query(NotificationOutbox).filter_by(user_id=parent_a.id).one()
        assert outbox.title == "Wallet Top-up"


class TestAdjust:
    def test_refund_credit(self, client, db_session, headers, finance_a, student_a):
        response = client.post("/api/finance/wallet/adjust", headers=headers(finance_a), json={
            "student_id": student_a.id,
            "amount_cents": 300,
            "type": "refund",
            "description": "Double charge",
        })

        assert response.status_code == 200
        assert response.json["data"]["wallet_balance_cents"] == 5300
        assert db_session.query(AuditLog).filter_by(action_type="WALLET_ADJUSTMENT").count() == 1

    def test_debit_adjustment_cannot_overdraw(self, client, db_session, headers, finance_a, student_a):
        response = client.post("/api/finance/wallet/adjust", headers=headers(finance_a), json={
            "student_id": student_a.id,
            "amount_cents": -6000,
            "type": "adjustment",
        })

        assert response.status_code == 402
        assert db_session.query(AuditLog).count() == 0

    def test_purchase_type_not_allowed(self, client, headers, finance_a, student_a):
        response = client.post("/api/finance/wallet/adjust", headers=headers(finance_a), json={
            "student_id": student_a.id,
            "amount_cents": -100,
            "type": "purchase",
        })
        assert response.status_code == 400


class TestHistory:
    def test_parent_sees_own_child(self, client, headers, parent_a, staff_a, student_a, juice_a):
        client.post("/api/pos/orders", headers=headers(staff_a), json={
            "student_id": student_a.id,
            "items": [{"id": juice_a.id, "quantity": 2}],
        })
        topup(client, headers(parent_a), student_a.id, 1000)

        response = client.get(f"/api/finance/wallet/{student_a.id}/history", headers=headers(parent_a))

        assert response.status_code == 200
        data = response.json["data"]
        assert data["wallet_balance_cents"] == 5000
        assert [t["type"] for t in data["transactions"]] == ["topup", "purchase"]

        purchase = data["transactions"][1]
        assert purchase["order_id"] is not None
        assert purchase["order_total_cents"] == 1000

    def test_other_parent_forbidden(self, client, headers, other_parent_a, student_a):
        response = client.get(f"/api/finance/wallet/{student_a.id}/history", headers=headers(other_parent_a))
        assert response.status_code == 403

    def test_staff_of_other_school_forbidden(self, client, headers, admin_b, student_a):
        response = client.get(f"/api/finance/wallet/{student_a.id}/history", headers=headers(admin_b))

        assert response.status_code == 403
        assert response.json["error"]["code"] == "TENANT_FORBIDDEN"

    def test_unknown_student(self, client, headers, admin_a):
        response = client.get("/api/finance/wallet/99999/history", headers=headers(admin_a))
        assert response.status_code == 404

    def test_limit_bounds(self, client, headers, admin_a, student_a):
        url = f"/api/finance/wallet/{student_a.id}/history"
        assert client.get(f"{url}?limit=0", headers=headers(admin_a)).status_code == 400
        assert client.get(f"{url}?limit=201", headers=headers(admin_a)).status_code == 400
        assert client.get(f"{url}?limit=200", headers=headers(admin_a)).status_code == 200
