"""
Shared test fixtures

The environment is pinned before any kitchenprint import so settings,
the engine and logging are built for tests: in-memory SQLite, no audit
file, print agent disabled.
"""
import asyncio
from decimal import Decimal
import os

os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["AUTO_CREATE_TABLES"] = "false"
os.environ["AUDIT_LOG_FILE"] = ""
os.environ["PRINT_AGENT_ENABLED"] = "false"
os.environ["LOG_FORMAT"] = "text"

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from kitchenprint.db.base import Base, import_models
from kitchenprint.models.printer import ConnectionType, Printer, PrintMode
from kitchenprint.models.product import Product
from kitchenprint.models.station import Station, StationCategory
from kitchenprint.services.transport import PrintTarget, SendResult

BRANCH_ID = "branch-1"

engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db_session():
    """Fresh schema for every test"""
    import_models()
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


class StubTransport:
    """
    Records every send; fails the printers listed in `fail_for`.

    `delay` keeps each send in flight for a moment so concurrency can be
    observed through `max_in_flight` and `per_printer_max_in_flight`.
    """

    def __init__(self, fail_for=(), error="Connection refused", delay=0.0, raise_for=()):
        self.fail_for = set(fail_for)
        self.raise_for = set(raise_for)
        self.error = error
        self.delay = delay
        self.sends = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._per_printer = {}
        self.per_printer_max_in_flight = {}

    async def send(self, target: PrintTarget, content: bytes) -> SendResult:
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        current = self._per_printer.get(target.printer_id, 0) + 1
        self._per_printer[target.printer_id] = current
        self.per_printer_max_in_flight[target.printer_id] = max(
            self.per_printer_max_in_flight.get(target.printer_id, 0), current
        )
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            self.sends.append((target, content))
            if target.printer_id in self.raise_for:
                raise RuntimeError("transport exploded")
            if target.printer_id in self.fail_for:
                return SendResult.failed(self.error)
            return SendResult.ok()
        finally:
            self.in_flight -= 1
            self._per_printer[target.printer_id] -= 1

    def sent_to(self, printer_id):
        return [content for target, content in self.sends if target.printer_id == printer_id]


@pytest.fixture
def transport():
    return StubTransport()


@pytest.fixture
def make_station(db_session):
    def _make(name, categories=(), branch_id=BRANCH_ID):
        station = Station(branch_id=branch_id, name=name)
        station.categories = [StationCategory(category_id=c) for c in categories]
        db_session.add(station)
        db_session.commit()
        db_session.refresh(station)
        return station
    return _make


@pytest.fixture
def make_printer(db_session):
    counter = {"n": 0}

    def _make(name, station=None, branch_id=BRANCH_ID, **fields):
        counter["n"] += 1
        values = {
            "branch_id": branch_id,
            "name": name,
            "connection_type": ConnectionType.NETWORK,
            "system_name": f"192.168.1.{counter['n'] + 10}",
            "port": 9100,
            "print_mode": PrintMode.STATION_ITEMS,
            "station_id": station.id if station else None,
            "auto_print": True,
            "copies": 1,
            "paper_width": 80,
            "characters_per_line": 48,
            "active": True,
        }
        values.update(fields)
        printer = Printer(**values)
        db_session.add(printer)
        db_session.commit()
        db_session.refresh(printer)
        return printer
    return _make


@pytest.fixture
def make_product(db_session):
    def _make(product_id, name, category_id, price=Decimal("10.00"), branch_id=BRANCH_ID):
        product = Product(id=product_id, branch_id=branch_id, name=name, category_id=category_id, price=price)
        db_session.add(product)
        db_session.commit()
        return product
    return _make


@pytest.fixture
def make_transport():
    return StubTransport
