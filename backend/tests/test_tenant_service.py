"""
Tests for tenant isolation helpers.

Covers:
- tenant_where pinning school_id for tenant users
- Super admins passing filters through unchanged
- assert_tenant_entity writing 403 TENANT_FORBIDDEN into the sink
- scoped_query never returning another school's rows
"""

import pytest

from schoolhub.models import CanteenItem, Student
from schoolhub.responses import ResponseSink
from schoolhub.roles import Role
from schoolhub.services.tenant_service import (
    assert_tenant_entity,
    get_tenant,
    scoped_query,
    tenant_where,
)


class TestTenantWhere:
    """tenant_where filter construction."""

    def test_tenant_user_gets_school_id(self, admin_a, school_a, identity):
        where = tenant_where(identity(admin_a), id=7)
        assert where == {"id": 7, "school_id": school_a.id}

    def test_tenant_user_cannot_override_school_id(self, admin_a, school_a, school_b, identity):
        where = tenant_where(identity(admin_a), school_id=school_b.id)
        assert where == {"school_id": school_a.id}

    def test_super_admin_filter_passes_through(self, super_admin, identity):
        where = tenant_where(identity(super_admin), id="x")
        assert where == {"id": "x"}
        assert "school_id" not in where

    def test_super_admin_explicit_school_id_kept(self, super_admin, school_b, identity):
        where = tenant_where(identity(super_admin), school_id=school_b.id)
        assert where == {"school_id": school_b.id}

    def test_get_tenant_projection(self, super_admin, parent_a, identity):
        root = get_tenant(identity(super_admin))
        assert root.is_super_admin is True
        assert root.school_id is None

        parent = get_tenant(identity(parent_a))
        assert parent.is_super_admin is False
        assert parent.role == Role.PARENT
        assert parent.user_id == parent_a.id


class TestAssertTenantEntity:
    """Entity guard before mutations."""

    def test_cross_school_entity_blocked(self, app, admin_a, school_b, identity):
        sink = ResponseSink()
        blocked = assert_tenant_entity(identity(admin_a), sink, school_b.id)

        assert blocked is True
        assert sink.written
        response, status = sink.to_response()
        assert status == 403
        assert response.get_json()["error"]["code"] == "TENANT_FORBIDDEN"
        assert response.get_json()["success"] is False

    def test_same_school_entity_allowed(self, admin_a, school_a, identity):
        sink = ResponseSink()
        assert assert_tenant_entity(identity(admin_a), sink, school_a.id) is False
        assert not sink.written

    def test_super_admin_never_blocked(self, super_admin, school_b, identity):
        sink = ResponseSink()
        assert assert_tenant_entity(identity(super_admin), sink, school_b.id) is False
        assert not sink.written


class TestResponseSink:
    def test_second_write_raises(self, app):
        sink = ResponseSink()
        sink.fail(403, "first", "TENANT_FORBIDDEN")
        with pytest.raises(RuntimeError):
            sink.fail(404, "second")

    def test_to_response_requires_write(self, app):
        with pytest.raises(RuntimeError):
            ResponseSink().to_response()


class TestScopedQuery:
    """scoped_query confines reads to the caller's school."""

    def test_only_own_school_rows(self, admin_a, student_a, student_b, identity):
        students = scoped_query(Student, identity(admin_a)).all()
        assert [s.id for s in students] == [student_a.id]

    def test_other_school_id_is_invisible(self, admin_a, student_b, identity):
        assert scoped_query(Student, identity(admin_a), id=student_b.id).first() is None

    def test_super_admin_sees_all_schools(self, super_admin, sandwich_a, item_b, identity):
        items = scoped_query(CanteenItem, identity(super_admin)).all()
        assert {i.id for i in items} == {sandwich_a.id, item_b.id}
