import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import models  # noqa: F401
from database import Base, get_db
from main import create_app
from models.company import Business
from models.job import Job, JobUser
from models.product import Part
from models.users import User, Role, UserStatus
from utils.hashing import get_password_hash

PASSWORD = "password123"


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture()
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def app(session_factory):
    app = create_app(run_init_db=False)

    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _get_db
    return app


@pytest.fixture()
def client_for(app):
    """Return a TestClient already logged in as the given user."""

    def _login(user: User) -> TestClient:
        client = TestClient(app)
        client.post("/api/login", json={"username": user.username, "password": PASSWORD})
        return client

    return _login


@pytest.fixture()
def anon_client(app):
    return TestClient(app)


def make_user(db, username, role=Role.TRADIE.value, business=None, approved=False, status=None, email=None):
    user = User(
        username=username,
        email=email or f"{username}@example.com",
        password_hash=get_password_hash(PASSWORD),
        first_name=username.capitalize(),
        last_name="Tester",
        role=role,
        business_id=business.id if business else None,
        is_approved=approved,
        status=status or (UserStatus.ACTIVE.value if approved else UserStatus.UNASSIGNED.value),
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


@pytest.fixture()
def business(db):
    row = Business(name="Acme Fire Protection", email="office@example.com", price_tier="T1")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture()
def other_business(db):
    row = Business(name="Southern Sprinklers", price_tier="T3")
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture()
def supplier(db):
    return make_user(db, "supplier", role=Role.SUPPLIER.value, approved=True)


@pytest.fixture()
def pm(db, business):
    return make_user(db, "paula", role=Role.PROJECT_MANAGER.value, business=business, approved=True)


@pytest.fixture()
def tradie(db, business):
    return make_user(db, "tom", business=business, approved=True)


@pytest.fixture()
def independent_tradie(db):
    return make_user(db, "sam")


@pytest.fixture()
def part(db):
    row = Part(item_code="SPK-108", pipe_size='1/2"', description="Standard Sprinkler Head",
               type="Sprinkler", price_t1=12.99, price_t2=11.75, price_t3=10.50, in_stock=120)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture()
def second_part(db):
    row = Part(item_code="VLV-243", pipe_size='2"', description="Butterfly Valve",
               type="Valve", price_t1=68.50, price_t2=65.25, price_t3=62.00, in_stock=5)
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture()
def job(db, business, pm, tradie):
    row = Job(name="Office Retrofit", job_number="JB-2023-142", business_id=business.id,
              project_manager_id=pm.id, status="active")
    db.add(row)
    db.flush()
    db.add(JobUser(job_id=row.id, user_id=tradie.id, assigned_by=pm.id))
    db.commit()
    db.refresh(row)
    return row
