"""
Pytest fixtures for SchoolHub backend tests.

Provides test database setup, two-school tenant fixtures, users for each
role, and auth header helpers.
"""

import pytest

from schoolhub import create_app
from schoolhub.extensions import db
from schoolhub.models import CanteenItem, FeeStructure, School, Student, User
from schoolhub.roles import Role
from schoolhub.services.auth_service import hash_password
from schoolhub.services.session_service import create_session
from schoolhub.services.tenant_service import CallerIdentity


PASSWORD = "Password123!"

# Hash once per test run; bcrypt at cost 12 is deliberately slow.
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOG_LEVEL': 'WARNING',
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def school_a(db_session):
    """Create School A (first tenant)."""
    school = School(name="School A - Amman Academy", code="AMM", is_active=True)
    db_session.add(school)
    db_session.commit()
    return school


@pytest.fixture(scope='function')
def school_b(db_session):
    """Create School B (second tenant)."""
    school = School(name="School B - Beirut Prep", code="BEY", is_active=True)
    db_session.add(school)
    db_session.commit()
    return school


def make_user(db_session, email: str, role: Role, school=None) -> User:
    user = User(
        email=email,
        full_name=email.split("@")[0].replace(".", " ").title(),
        role=role.value,
        school_id=school.id if school else None,
        password_hash=PASSWORD_HASH,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope='function')
def super_admin(db_session):
    return make_user(db_session, "root@schoolhub.local", Role.SUPER_ADMIN)


@pytest.fixture(scope='function')
def admin_a(db_session, school_a):
    return make_user(db_session, "admin@amm.school", Role.SCHOOL_ADMIN, school_a)


@pytest.fixture(scope='function')
def admin_b(db_session, school_b):
    return make_user(db_session, "admin@bey.school", Role.SCHOOL_ADMIN, school_b)


@pytest.fixture(scope='function')
def finance_a(db_session, school_a):
    return make_user(db_session, "finance@amm.school", Role.FINANCE, school_a)


@pytest.fixture(scope='function')
def staff_a(db_session, school_a):
    """Canteen staff in School A."""
    return make_user(db_session, "canteen@amm.school", Role.CANTEEN_STAFF, school_a)


@pytest.fixture(scope='function')
def staff_b(db_session, school_b):
    return make_user(db_session, "canteen@bey.school", Role.CANTEEN_STAFF, school_b)


@pytest.fixture(scope='function')
def parent_a(db_session, school_a):
    return make_user(db_session, "rana.haddad@parents.example", Role.PARENT, school_a)


@pytest.fixture(scope='function')
def other_parent_a(db_session, school_a):
    return make_user(db_session, "sami.khoury@parents.example", Role.PARENT, school_a)


@pytest.fixture(scope='function')
def student_a(db_session, school_a, parent_a):
    """Student in School A with a 50.00 wallet and no daily limit."""
    student = Student(
        school_id=school_a.id,
        parent_id=parent_a.id,
        full_name="Omar Haddad",
        nfc_card_id="CARD-A-0001",
        is_nfc_active=True,
        wallet_balance_cents=5000,
        daily_spending_limit_cents=None,
    )
    db_session.add(student)
    db_session.commit()
    return student


@pytest.fixture(scope='function')
def student_b(db_session, school_b):
    """Student in School B."""
    student = Student(
        school_id=school_b.id,
        full_name="Lina Saad",
        nfc_card_id="CARD-B-0001",
        is_nfc_active=True,
        wallet_balance_cents=5000,
    )
    db_session.add(student)
    db_session.commit()
    return student


@pytest.fixture(scope='function')
def sandwich_a(db_session, school_a):
    item = CanteenItem(school_id=school_a.id, name="Cheese sandwich", price_cents=1500, category="food")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def juice_a(db_session, school_a):
    item = CanteenItem(school_id=school_a.id, name="Orange juice", price_cents=500, category="drinks")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def item_b(db_session, school_b):
    item = CanteenItem(school_id=school_b.id, name="Falafel wrap", price_cents=700, category="food")
    db_session.add(item)
    db_session.commit()
    return item


@pytest.fixture(scope='function')
def tuition_a(db_session, school_a):
    fee = FeeStructure(school_id=school_a.id, name="Tuition", academic_year="2026-2027", total_amount_cents=100000)
    db_session.add(fee)
    db_session.commit()
    return fee


def identity_for(user: User) -> CallerIdentity:
    """CallerIdentity as require_auth would build it."""
    return CallerIdentity(
        id=user.id,
        role=Role.parse(user.role),
        school_id=user.school_id,
        email=user.email,
    )


def auth_headers(token: str) -> dict:
    """Helper to create Authorization headers."""
    return {'Authorization': f'Bearer {token}'}


def headers_for(user: User) -> dict:
    """Open a session for user and return its Authorization headers."""
    _session, token = create_session(user)
    return auth_headers(token)


def get_auth_token(client, email: str, password: str = PASSWORD) -> str:
    """Helper to get auth token through the login endpoint."""
    response = client.post('/api/auth/login', json={
        'email': email,
        'password': password
    })
    if response.status_code == 200:
        return response.json['data']['token']
    return None


@pytest.fixture(scope='function')
def headers(db_session):
    """Factory fixture: headers(user) -> Authorization headers for a fresh session."""
    return headers_for


@pytest.fixture(scope='function')
def identity():
    """Factory fixture: identity(user) -> CallerIdentity."""
    return identity_for
