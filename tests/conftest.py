"""
Shared fixtures: in-memory SQLite ledger database and catalog factories.
"""
from uuid import uuid4

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import marketplace.models  # noqa: F401  (registers every table on Base.metadata)
from marketplace.db.base import Base
from marketplace.models.asset import Asset
from marketplace.models.print_spec import PrintSpec


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; emit BEGIN ourselves
    @event.listens_for(engine, "connect")
    def _connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin(conn):
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def make_asset(db):
    def _make(creator_id="creator-1", digital_price=2500, is_active=True, **kwargs):
        asset_id = kwargs.pop("id", str(uuid4()))
        asset = Asset(
            id=asset_id,
            creator_id=creator_id,
            title=kwargs.pop("title", "Ridge line at dawn"),
            digital_price=digital_price,
            is_active=is_active,
            storage_key=kwargs.pop("storage_key", f"originals/{asset_id}.jpg"),
            **kwargs,
        )
        db.add(asset)
        db.flush()
        return asset

    return _make


@pytest.fixture
def make_print_spec(db):
    def _make(price=4000, medium="canvas", is_active=True):
        spec = PrintSpec(
            id=str(uuid4()),
            name=f"{medium} 16x20",
            medium=medium,
            width_inches=16,
            height_inches=20,
            price=price,
            is_active=is_active,
        )
        db.add(spec)
        db.flush()
        return spec

    return _make
