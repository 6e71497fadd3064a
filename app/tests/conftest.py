import os
import tempfile
_default_test_secret = "test-jwt-secret-for-pytest-only-0000000000000000"
if len(os.environ.get("JWT_SECRET", "")) < 32:
    os.environ["JWT_SECRET"] = _default_test_secret

os.environ.setdefault("ENV", "test")
# Suites issue far more writes per user than a real client would.
os.environ.setdefault("RATE_LIMIT_MAX_REQUESTS", "100000")

import itertools
import subprocess
from datetime import date
from decimal import Decimal
from pathlib import Path
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url

_default_sqlite_path = Path(tempfile.mkdtemp(prefix="timeledger-test-")) / "timeledger_test.db"
TEST_DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{_default_sqlite_path}")
os.environ["DATABASE_URL"] = TEST_DATABASE_URL

from app import database
from app.models.company_expense import CompanyExpense
from app.models.expense import Expense
from app.models.time_entry import TimeEntry

# audit_log is append-only, so it is never cleared between tests; every test
# works in its own company to keep audit assertions independent.
_MUTABLE_TABLES = ("time_entries", "expenses", "company_expenses")
_company_ids = itertools.count(1000)


def _ensure_database_exists(database_url: str) -> None:
    url = make_url(database_url)

    if not url.drivername.startswith("postgresql"):
        return

    db_name = url.database
    admin_url = url.set(database="postgres")
    admin_engine = create_engine(admin_url, isolation_level="AUTOCOMMIT")

    try:
        with admin_engine.connect() as conn:
            exists = conn.execute(
                text("SELECT 1 FROM pg_database WHERE datname = :name"),
                {"name": db_name},
            ).scalar()
            if not exists:
                safe_db_name = db_name.replace('"', '""')
                conn.execute(text(f'CREATE DATABASE "{safe_db_name}"'))
    finally:
        admin_engine.dispose()


def _clear_mutable_tables() -> None:
    with database.engine.begin() as conn:
        if database.engine.dialect.name == "postgresql":
            quoted = ", ".join(f'"public"."{name}"' for name in _MUTABLE_TABLES)
            conn.execute(text(f"TRUNCATE TABLE {quoted} RESTART IDENTITY CASCADE"))
            return
        for name in _MUTABLE_TABLES:
            conn.execute(text(f"DELETE FROM {name}"))


@pytest.fixture(scope="session", autouse=True)
def _prepare_test_database() -> None:
    _ensure_database_exists(TEST_DATABASE_URL)

    env = os.environ.copy()
    env["DATABASE_URL"] = TEST_DATABASE_URL

    subprocess.run(
        ["alembic", "upgrade", "head"],
        check=True,
        cwd=Path(__file__).resolve().parents[2],
        env=env,
    )

    database.configure_database()


@pytest.fixture(scope="function", autouse=True)
def _clear_tables_between_tests():
    _clear_mutable_tables()
    yield
    _clear_mutable_tables()


@pytest.fixture
def company_id() -> int:
    return next(_company_ids)


@pytest.fixture
def time_entry_factory():
    def _create(
        company_id: int,
        user_id: str,
        entry_date: date,
        hours: float = 7.5,
        approval_status: str = "draft",
        billing_status: str = "billable",
    ) -> TimeEntry:
        db = database.SessionLocal()
        try:
            row = TimeEntry(
                id=str(uuid4()),
                company_id=company_id,
                user_id=user_id,
                date=entry_date,
                hours=hours,
                billing_status=billing_status,
                approval_status=approval_status,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    return _create


@pytest.fixture
def expense_factory():
    def _create(
        company_id: int,
        user_id: str,
        amount: str = "250.00",
        approval_status: str = "draft",
        expense_date: date = date(2024, 3, 4),
        currency: str = "DKK",
    ) -> Expense:
        db = database.SessionLocal()
        try:
            row = Expense(
                id=str(uuid4()),
                company_id=company_id,
                user_id=user_id,
                date=expense_date,
                amount=Decimal(amount),
                currency=currency,
                description="Train ticket",
                category="travel",
                approval_status=approval_status,
                is_finalized=False,
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    return _create


@pytest.fixture
def company_expense_factory():
    def _create(
        company_id: int,
        amount: str,
        expense_date: date,
        category: str = "rent",
        currency: str = "DKK",
        recurring: bool = False,
        frequency=None,
    ) -> CompanyExpense:
        db = database.SessionLocal()
        try:
            row = CompanyExpense(
                id=str(uuid4()),
                company_id=company_id,
                amount=Decimal(amount),
                currency=currency,
                description=f"{category} {expense_date.isoformat()}",
                category=category,
                date=expense_date,
                recurring=recurring,
                frequency=frequency,
                is_deleted=False,
                created_by="admin-1",
            )
            db.add(row)
            db.commit()
            db.refresh(row)
            return row
        finally:
            db.close()

    return _create
