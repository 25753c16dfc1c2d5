from datetime import date
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.accounting.posting import JournalLineInput
from app.accounting.service import create_journal_entry
from app.auth import Actor, get_current_actor
from app.db import Base, get_db
from app.main import app
from app.models import Account, Party, TaxGroup
from app.seed import seed_ledger

TEST_ACTOR = Actor(id="tester", is_admin=True)


@pytest.fixture(autouse=True)
def override_auth(request):
    if request.node.get_closest_marker("real_auth"):
        yield
        return

    app.dependency_overrides[get_current_actor] = lambda: TEST_ACTOR
    yield
    app.dependency_overrides.pop(get_current_actor, None)


@pytest.fixture()
def session_factory():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    TestingSessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False)
    Base.metadata.create_all(engine)
    with TestingSessionLocal() as db:
        seed_ledger(db)
        db.commit()
    yield TestingSessionLocal
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture()
def db_session(session_factory):
    with session_factory() as db:
        yield db


@pytest.fixture()
def client(session_factory):
    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture()
def account_ids(session_factory) -> dict[str, int]:
    with session_factory() as db:
        return {account.code: account.id for account in db.query(Account).all()}


@pytest.fixture()
def gst_group_id(session_factory) -> int:
    with session_factory() as db:
        return db.query(TaxGroup).filter(TaxGroup.name == "GST 18%").one().id


@pytest.fixture()
def customer_id(session_factory) -> int:
    with session_factory() as db:
        party = Party(type="CUSTOMER", name="Acme Retail")
        db.add(party)
        db.commit()
        return party.id


@pytest.fixture()
def vendor_id(session_factory) -> int:
    with session_factory() as db:
        party = Party(type="VENDOR", name="Northwind Supplies")
        db.add(party)
        db.commit()
        return party.id


@pytest.fixture()
def post_entry(session_factory):
    """Post a balanced two-line entry through the system path (approved and posted on creation)."""

    def _post(debit_account_id, credit_account_id, amount, *, entry_date=date(2025, 1, 15), description="Posted entry", **extra):
        with session_factory() as db:
            entry = create_journal_entry(
                db,
                entry_date=entry_date,
                description=description,
                lines=[
                    JournalLineInput(account_id=debit_account_id, debit=Decimal(amount)),
                    JournalLineInput(account_id=credit_account_id, credit=Decimal(amount)),
                ],
                created_by="system",
                auto_post=True,
                **extra,
            )
            db.commit()
            return entry.id

    return _post
