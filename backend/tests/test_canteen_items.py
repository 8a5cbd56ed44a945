"""
Tests for canteen catalogue management.
"""

from schoolhub.models import CanteenItem


class TestCreateItem:
    def test_admin_creates_item_in_own_school(self, client, db_session, headers, admin_a, school_a):
        response = client.post("/api/pos/items", headers=headers(admin_a), json={
            "name": "Hummus wrap",
            "price_cents": 250,
            "category": "food",
        })

        assert response.status_code == 201
        data = response.json["data"]
        assert data["school_id"] == school_a.id
        assert data["price_cents"] == 250
        assert data["is_available"] is True

    def test_duplicate_name_conflict(self, client, headers, admin_a, sandwich_a):
        response = client.post("/api/pos/items", headers=headers(admin_a), json={
            "name": sandwich_a.name,
            "price_cents": 100,
        })

        assert response.status_code == 409
        assert response.json["error"]["code"] == "DUPLICATE_ITEM"

    def test_same_name_allowed_in_other_school(self, client, headers, admin_b, sandwich_a):
        response = client.post("/api/pos/items", headers=headers(admin_b), json={
            "name": sandwich_a.name,
            "price_cents": 100,
        })
        assert response.status_code == 201

    def test_zero_price_rejected(self, client, headers, admin_a):
        response = client.post("/api/pos/items", headers=headers(admin_a), json={"name": "Water", "price_cents": 0})

        assert response.status_code == 400
        assert response.json["error"]["code"] == "VALIDATION_ERROR"

    def test_unknown_field_rejected(self, client, headers, admin_a, school_b):
        response = client.post("/api/pos/items", headers=headers(admin_a), json={
            "name": "Water",
            "price_cents": 50,
            "school_id": school_b.id,
        })
        assert response.status_code == 400

    def test_missing_price_rejected(self, client, headers, admin_a):
        response = client.post("/api/pos/items", headers=headers(admin_a), json={"name": "Water"})
        assert response.status_code == 400

    def test_canteen_staff_cannot_create(self, client, headers, staff_a):
        response = client.post("/api/pos/items", headers=headers(staff_a), json={"name": "Water", "price_cents": 50})

        assert response.status_code == 403
        assert response.json["error"]["code"] == "FORBIDDEN_ROLE"


class TestUpdateItem:
    def test_update_price(self, client, headers, admin_a, sandwich_a):
        response = client.put(f"/api/pos/items/{sandwich_a.id}", headers=headers(admin_a), json={"price_cents": 1750})

        assert response.status_code == 200
        assert response.json["data"]["price_cents"] == 1750

    def test_cross_school_item_not_found(self, client, db_session, headers, admin_a, item_b):
        response = client.put(f"/api/pos/items/{item_b.id}", headers=headers(admin_a), json={"price_cents": 1})

        assert response.status_code == 404
        assert db_session.get(CanteenItem, item_b.id).price_cents == 700

    def test_rename_onto_existing_name_conflicts(self, client, headers, admin_a, sandwich_a, juice_a):
        response = client.put(f"/api/pos/items/{juice_a.id}", headers=headers(admin_a), json={"name": sandwich_a.name})
        assert response.status_code == 409


class TestDeleteItem:
    def test_unreferenced_item_deleted(self, client, db_session, headers, admin_a, juice_a):
        item_id = juice_a.id
        response = client.delete(f"/api/pos/items/{item_id}", headers=headers(admin_a))

        assert response.status_code == 204
        assert db_session.query(CanteenItem).filter_by(id=item_id).first() is None

    def test_referenced_item_deactivated(self, client, db_session, headers, admin_a, staff_a, student_a, juice_a):
        client.post("/api/pos/orders", headers=headers(staff_a), json={
            "student_id": student_a.id,
            "items": [{"id": juice_a.id}],
        })

        response = client.delete(f"/api/pos/items/{juice_a.id}", headers=headers(admin_a))

        assert response.status_code == 204
        item = db_session.get(CanteenItem, juice_a.id)
        assert item is not None
        assert item.is_available is False

    def test_cross_school_delete_not_found(self, client, db_session, headers, admin_a, item_b):
        response = client.delete(f"/api/pos/items/{item_b.id}", headers=headers(admin_a))

        assert response.status_code == 404
        assert db_session.get(CanteenItem, item_b.id) is not None
