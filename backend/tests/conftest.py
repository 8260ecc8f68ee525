"""Shared test fixtures."""

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient
from datetime import date, datetime
from decimal import Decimal
import uuid

from ledgerkeep.config import settings
from ledgerkeep.database import Base, get_db as database_get_db
from ledgerkeep.dependencies import get_db as dependencies_get_db
from ledgerkeep.main import app
from ledgerkeep.models.account import Account, AccountType
from ledgerkeep.models.transaction import TransactionType
from ledgerkeep.schemas.transaction import CanonicalTransaction
from ledgerkeep.services.ledger_store import LedgerStore


CHASE_CHECKING_CSV = (
    "Details,Posting Date,Description,Amount,Type,Balance,Check or Slip #\n"
    "DEBIT,01/18/2024,\"DEBIT CARD PURCHASE STARBUCKS #123\",-5.75,DEBIT_CARD,1234.25,,\n"
    "CREDIT,01/15/2024,\"PAYROLL DEPOSIT ACME CORP\",2500.00,ACH_CREDIT,1240.00,,\n"
    "DEBIT,01/12/2024,\"ONLINE TRANSFER TO SAV ...1234\",-500.00,ACCT_XFER,-1260.00,,\n"
    "CHECK,01/10/2024,\"CHECK 1042\",120.00,CHECK_PAID,-760.00,1042,\n"
)

CHASE_CREDIT_CSV = (
    "Transaction Date,Post Date,Description,Category,Type,Amount,Memo\n"
    "01/20/2024,01/21/2024,WHOLEFDS MKT 10234,Groceries,Sale,-82.14,\n"
    "01/18/2024,01/19/2024,NETFLIX.COM,Entertainment,Sale,-15.49,\n"
    "01/15/2024,01/15/2024,Payment Thank You-Mobile,,Payment,500.00,\n"
    "01/11/2024,01/12/2024,AMAZON MKTPL RETURN,Shopping,Return,23.99,\n"
)

OFX_SAMPLE = """OFXHEADER:100
DATA:OFXSGML
VERSION:102
SECURITY:NONE
ENCODING:USASCII
CHARSET:1252
COMPRESSION:NONE
OLDFILEUID:NONE
NEWFILEUID:NONE

<OFX>
<SIGNONMSGSRSV1>
<SONRS>
<STATUS><CODE>0<SEVERITY>INFO</STATUS>
<DTSERVER>20240131120000
<LANGUAGE>ENG
<FI><ORG>First Example Bank<FID>1234</FI>
</SONRS>
</SIGNONMSGSRSV1>
<BANKMSGSRSV1>
<STMTTRNRS>
<TRNUID>1
<STMTRS>
<CURDEF>USD
<BANKACCTFROM>
<BANKID>123456789
<ACCTID>000111229876
<ACCTTYPE>CHECKING
</BANKACCTFROM>
<BANKTRANLIST>
<DTSTART>20240101
<DTEND>20240131
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20240115120000[-5:EST]
<TRNAMT>-42.50
<FITID>2024011501
<NAME>SHELL OIL 5744
<MEMO>Fuel purchase
</STMTTRN>
<STMTTRN>
<TRNTYPE>CREDIT
<DTPOSTED>20240116
<TRNAMT>1500.00
<FITID>2024011601
<NAME>PAYROLL ACME CORP
</STMTTRN>
<STMTTRN>
<TRNTYPE>DEBIT
<DTPOSTED>20240120
<TRNAMT>-12.00
<FITID>2024012001
<MEMO>Monthly service fee
</STMTTRN>
</BANKTRANLIST>
<LEDGERBAL>
<BALAMT>3021.45
<DTASOF>20240131
</LEDGERBAL>
</STMTRS>
</STMTTRNRS>
</BANKMSGSRSV1>
</OFX>
"""

GENERIC_CSV = (
    "Date,Description,Amount,Memo\n"
    "2024-02-01,TRADER JOE'S #552,-64.20,weekly shop\n"
    "2024-02-03,CITY WATER UTILITY,-41.00,\n"
    "2024-02-05,MYSTERY VENDOR LLC,-19.99,\n"
)

UNRELATED_CSV = (
    "name,age,city\n"
    "Alice,34,Lisbon\n"
    "Bob,29,Oslo\n"
)


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test using in-memory SQLite."""
    # Use StaticPool to ensure all connections use the same in-memory database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # Create all tables
    Base.metadata.create_all(bind=engine)

    # Create session
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def client(db_session):
    """Create a test client with database override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    # Override both get_db functions (some callers use ledgerkeep.database, routes use ledgerkeep.dependencies)
    app.dependency_overrides[database_get_db] = override_get_db
    app.dependency_overrides[dependencies_get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def store(db_session):
    return LedgerStore(db_session)


@pytest.fixture
def import_dirs(tmp_path, monkeypatch):
    """Point the import inbox/processed/failed folders at a temp directory."""
    monkeypatch.setattr(settings, "import_inbox_path", str(tmp_path / "inbox"))
    monkeypatch.setattr(settings, "import_processed_path", str(tmp_path / "processed"))
    monkeypatch.setattr(settings, "import_failed_path", str(tmp_path / "failed"))
    return tmp_path


@pytest.fixture
def sample_account(db_session):
    """Create a sample account."""
    account = Account(id=str(uuid.uuid4()), name="Test Checking", institution="Test Bank")
    account.account_type = AccountType.checking
    account.is_active = True

    db_session.add(account)
    db_session.commit()
    db_session.refresh(account)
    return account


@pytest.fixture
def make_transaction(sample_account):
    """Factory for canonical transactions on the sample account."""
    def _make(**overrides):
        data = {
            "id": str(uuid.uuid4()),
            "date": date(2024, 1, 15),
            "description": "WHOLE FOODS #1234",
            "amount": Decimal("-50.00"),
            "category": "Groceries",
            "account": sample_account.name,
            "type": TransactionType.expense,
            "added_date": datetime(2024, 1, 16, 9, 30),
        }
        data.update(overrides)
        return CanonicalTransaction(**data)
    return _make


@pytest.fixture
def sample_transaction(db_session, store, make_transaction):
    """Create a sample transaction."""
    txn = make_transaction()
    with store.atomic():
        store.bulk_add_transactions([txn], skip_history=True)
    return store.get_transaction(txn.id)


@pytest.fixture
def chase_checking_csv():
    return CHASE_CHECKING_CSV


@pytest.fixture
def chase_credit_csv():
    return CHASE_CREDIT_CSV


@pytest.fixture
def ofx_sample():
    return OFX_SAMPLE


@pytest.fixture
def generic_csv():
    return GENERIC_CSV


@pytest.fixture
def unrelated_csv():
    return UNRELATED_CSV
