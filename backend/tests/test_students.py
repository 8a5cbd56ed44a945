"""
Tests for student enrolment, NFC cards and parental wallet controls.
"""

from schoolhub.models import Student, WalletTransaction


class TestCreateStudent:
    def test_create_with_opening_balance(self, client, db_session, headers, admin_a, parent_a, school_a):
        response = client.post("/api/students", headers=headers(admin_a), json={
            "full_name": "Yara Haddad",
            "parent_id": parent_a.id,
            "nfc_card_id": "CARD-A-0002",
            "initial_wallet_balance_cents": 2500,
        })

        assert response.status_code == 201
        data = response.json["data"]
        assert data["school_id"] == school_a.id
        assert data["wallet_balance_cents"] == 2500
        assert data["balance_cents"] == 0

        txn = db_session.query(WalletTransaction).filter_by(student_id=data["id"]).one()
        assert txn.type == "adjustment"
        assert txn.amount_cents == 2500

    def test_duplicate_nfc_in_school_conflicts(self, client, db_session, headers, admin_a, student_a):
        response = client.post("/api/students", headers=headers(admin_a), json={
            "full_name": "Twin",
            "nfc_card_id": student_a.nfc_card_id,
        })

        assert response.status_code == 409
        assert response.json["error"]["code"] == "NFC_CONFLICT"
        assert db_session.query(Student).count() == 1

    def test_same_nfc_allowed_in_other_school(self, client, headers, admin_b, student_a):
        response = client.post("/api/students", headers=headers(admin_b), json={
            "full_name": "Namesake",
            "nfc_card_id": student_a.nfc_card_id,
        })
        assert response.status_code == 201

    def test_parent_must_belong_to_school(self, client, headers, admin_b, parent_a):
        response = client.post("/api/students", headers=headers(admin_b), json={
            "full_name": "Stray",
            "parent_id": parent_a.id,
        })
        assert response.status_code == 400

    def test_malformed_nfc_rejected(self, client, headers, admin_a):
        response = client.post("/api/students", headers=headers(admin_a), json={
            "full_name": "Bad Card",
            "nfc_card_id": "a b",
        })
        assert response.status_code == 400

    def test_super_admin_must_name_school(self, client, headers, super_admin, school_b):
        auth = headers(super_admin)

        assert client.post("/api/students", headers=auth, json={"full_name": "Nowhere"}).status_code == 400

        response = client.post("/api/students", headers=auth, json={"full_name": "Somewhere", "school_id": school_b.id})
        assert response.status_code == 201
        assert response.json["data"]["school_id"] == school_b.id

    def test_super_admin_unknown_school_not_found(self, client, db_session, headers, super_admin):
        response = client.post("/api/students", headers=headers(super_admin), json={
            "full_name": "Ghost",
            "school_id": 9999,
            "nfc_card_id": "CARD-X-0001",
        })

        assert response.status_code == 404
        assert response.json["error"]["code"] == "NOT_FOUND"
        assert db_session.query(Student).count() == 0


class TestReadStudents:
    def test_list_scoped_to_school(self, client, headers, finance_a, student_a, student_b):
        response = client.get("/api/students", headers=headers(finance_a))

        assert response.status_code == 200
        assert [s["id"] for s in response.json["data"]] == [student_a.id]

    def test_my_children(self, client, headers, parent_a, other_parent_a, student_a):
        mine = client.get("/api/students/my-children", headers=headers(parent_a))
        assert [s["id"] for s in mine.json["data"]] == [student_a.id]

        theirs = client.get("/api/students/my-children", headers=headers(other_parent_a))
        assert theirs.json["data"] == []

    def test_parent_cannot_read_other_child(self, client, headers, other_parent_a, student_a):
        response = client.get(f"/api/students/{student_a.id}", headers=headers(other_parent_a))
        assert response.status_code == 404

    def test_cross_school_read_not_found(self, client, headers, admin_b, student_a):
        response = client.get(f"/api/students/{student_a.id}", headers=headers(admin_b))
        assert response.status_code == 404


class TestNfcCards:
    def test_assign_card(self, client, headers, admin_a, student_a):
        response = client.patch(f"/api/students/{student_a.id}/nfc", headers=headers(admin_a), json={
            "nfc_card_id": "CARD-A-0099",
        })

        assert response.status_code == 200
        assert response.json["data"]["nfc_card_id"] == "CARD-A-0099"

    def test_assign_used_card_conflicts(self, client, db_session, headers, admin_a, student_a, school_a):
        other = Student(school_id=school_a.id, full_name="Karim Aziz", nfc_card_id="CARD-A-0500")
        db_session.add(other)
        db_session.commit()

        response = client.patch(f"/api/students/{other.id}/nfc", headers=headers(admin_a), json={
            "nfc_card_id": student_a.nfc_card_id,
        })

        assert response.status_code == 409
        assert response.json["error"]["code"] == "NFC_CONFLICT"

    def test_parent_freezes_card(self, client, headers, parent_a, staff_a, student_a):
        response = client.patch(f"/api/students/{student_a.id}/nfc-status", headers=headers(parent_a), json={
            "is_nfc_active": False,
        })

        assert response.status_code == 200
        assert response.json["data"]["is_nfc_active"] is False

        verify = client.get(f"/api/pos/verify-card/{student_a.nfc_card_id}", headers=headers(staff_a))
        assert verify.json["error"]["code"] == "CARD_FROZEN"

    def test_non_boolean_status_rejected(self, client, headers, parent_a, student_a):
        response = client.patch(f"/api/students/{student_a.id}/nfc-status", headers=headers(parent_a), json={
            "is_nfc_active": "no",
        })
        assert response.status_code == 400


class TestSpendingLimit:
    def test_parent_sets_and_clears_limit(self, client, db_session, headers, parent_a, student_a):
        auth = headers(parent_a)
        url = f"/api/students/{student_a.id}/spending-limit"

        response = client.patch(url, headers=auth, json={"daily_spending_limit_cents": 800})
        assert response.status_code == 200
        assert db_session.get(Student, student_a.id).daily_spending_limit_cents == 800

        response = client.patch(url, headers=auth, json={"daily_spending_limit_cents": None})
        assert response.status_code == 200
        assert db_session.get(Student, student_a.id).daily_spending_limit_cents is None

    def test_missing_field_rejected(self, client, headers, parent_a, student_a):
        response = client.patch(f"/api/students/{student_a.id}/spending-limit", headers=headers(parent_a), json={})
        assert response.status_code == 400

    def test_other_parent_cannot_set_limit(self, client, headers, other_parent_a, student_a):
        response = client.patch(f"/api/students/{student_a.id}/spending-limit", headers=headers(other_parent_a), json={
            "daily_spending_limit_cents": 0,
        })
        assert response.status_code == 404
