import os
from datetime import UTC, date, datetime, timedelta
from decimal import Decimal

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite://")
os.environ.setdefault("LOG_FORMAT", "text")

from sqlalchemy import create_engine, event  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from app.db import Base  # noqa: E402
from app.models import BufferCustomer, BufferDueDate, BufferInvoice, BufferInvoiceRow  # noqa: E402

BASE_TIME = datetime(2024, 1, 1, 8, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # SQLAlchemy emits BEGIN itself so SAVEPOINT and the per-test rollback hold on pysqlite.
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, _connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    return engine


@pytest.fixture()
def db_session(engine):
    connection = engine.connect()
    transaction = connection.begin()
    # Service commits release a savepoint; the outer transaction is rolled back after each test.
    SessionLocal = sessionmaker(
        bind=connection,
        autoflush=False,
        autocommit=False,
        join_transaction_mode="create_savepoint",
    )
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


def _at(minutes: int) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


@pytest.fixture()
def make_customer(db_session):
    def _make(sage_id: str, minutes: int = 0, synced: bool | None = None, **overrides) -> BufferCustomer:
        customer = BufferCustomer(
            sage_id=sage_id,
            code=overrides.pop("code", sage_id),
            company_name=overrides.pop("company_name", f"Company {sage_id}"),
            currency="XOF",
            payment_delay=30,
            credit_limit=Decimal("1000000.00"),
            is_active=True,
            synced=synced,
            sync_date=_at(0) if synced else None,
            created_at=_at(minutes),
            **overrides,
        )
        db_session.add(customer)
        db_session.commit()
        return customer

    return _make


@pytest.fixture()
def make_invoice_row(db_session):
    """Installment row of the row-per-due-date buffer shape."""

    def _make(
        sage_id: str,
        invoice_number: str | None,
        due: date,
        amount: str,
        minutes: int = 0,
        customer: str = "C001",
        synced: bool | None = None,
        **overrides,
    ) -> BufferInvoiceRow:
        row = BufferInvoiceRow(
            sage_id=sage_id,
            reference=sage_id,
            invoice_number=invoice_number,
            customer_sage_id=customer,
            invoice_date=due,
            currency=overrides.pop("currency", "XOF"),
            total_amount=Decimal(amount),
            type=overrides.pop("type", "FA"),
            created_by=overrides.pop("created_by", "sage"),
            synced=synced,
            sync_date=_at(0) if synced else None,
            created_at=_at(minutes),
            **overrides,
        )
        db_session.add(row)
        db_session.commit()
        return row

    return _make


@pytest.fixture()
def make_invoice(db_session):
    """Invoice header plus due-dates of the normalized buffer shape.

    ``due_dates`` is a list of ``(date, amount)`` or ``(date, amount, synced)``.
    """

    def _make(
        invoice_number: str | None,
        due_dates: list[tuple],
        minutes: int = 0,
        total: str | None = None,
        synced: bool | None = None,
        customer: str = "C001",
    ) -> BufferInvoice:
        invoice = BufferInvoice(
            invoice_number=invoice_number,
            customer_sage_id=customer,
            invoice_date=min(d[0] for d in due_dates) if due_dates else None,
            currency="XOF",
            total_amount=Decimal(total) if total is not None else None,
            reference=f"REF-{invoice_number}",
            created_by="sage",
            synced=synced,
            sync_date=_at(0) if synced else None,
            created_at=_at(minutes),
        )
        db_session.add(invoice)
        db_session.flush()
        for entry in due_dates:
            due, amount = entry[0], entry[1]
            due_synced = entry[2] if len(entry) > 2 else None
            db_session.add(
                BufferDueDate(
                    invoice_id=invoice.id,
                    due_date=due,
                    amount=Decimal(amount),
                    type="ECH",
                    synced=due_synced,
                    sync_date=_at(0) if due_synced else None,
                    created_at=_at(minutes),
                )
            )
        db_session.commit()
        return invoice

    return _make
