import os
import sys
# Ensure project root is on sys.path for imports like 'explorer.*'
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

import sqlite3
import httpx
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event

from explorer.api.services.app_state import get_app_state, reset_app_state


PG_CONN = {
    "provider": "postgresql",
    "host": "localhost",
    "port": 5432,
    "database": "app",
    "username": "u",
    "password": "p",
    "ssl": False,
}
MYSQL_CONN = {**PG_CONN, "provider": "mysql", "port": 3306}
SUPABASE_CONN = {
    "provider": "supabase",
    "projectUrl": "https://abc.supabase.co",
    "anonKey": "anon-key",
    "serviceRoleKey": "service-key",
}
FIREBASE_CONN = {
    "provider": "firebase",
    "projectId": "demo",
    "apiKey": "fb-key",
    "databaseUrl": "https://demo.firebaseio.com",
}


def setup_demo_db(path):
    conn = sqlite3.connect(path)
    cur = conn.cursor()
    cur.executescript(
        """
        CREATE TABLE users (
            id INTEGER PRIMARY KEY,
            email TEXT,
            status TEXT
        );
        CREATE TABLE items (
            sku TEXT PRIMARY KEY,
            title TEXT
        );
        INSERT INTO items (sku, title) VALUES ('a', 'Apple'), ('b', 'Banana'), ('c', 'Cherry');
        """
    )
    cur.executemany(
        "INSERT INTO users (id, email, status) VALUES (?, ?, ?)",
        [(i, f"user{i}@example.com", "active") for i in range(1, 61)],
    )
    conn.commit()
    conn.close()


class RecordingEngineFactory:
    """Hands out sqlite engines in place of PostgreSQL/MySQL and records every statement."""

    def __init__(self, db_path):
        self.db_path = db_path
        self.calls = []
        self.statements = []
        self.engines = []

    def __call__(self, connection, pool_size=1, connect_timeout=5):
        self.calls.append({"provider": connection.provider, "pool_size": pool_size, "connect_timeout": connect_timeout})
        engine = create_engine(f"sqlite:///{self.db_path}", future=True)

        @event.listens_for(engine, "before_cursor_execute")
        def record(conn, cursor, statement, parameters, context, executemany):
            self.statements.append((statement, tuple(parameters)))

        self.engines.append(engine)
        return engine

    def rows(self, sql):
        conn = sqlite3.connect(self.db_path)
        try:
            return conn.execute(sql).fetchall()
        finally:
            conn.close()


class RecordingTransport:
    """httpx.MockTransport wrapper keeping every request it answered."""

    def __init__(self, handler):
        self.requests = []

        def record(request):
            self.requests.append(request)
            return handler(request)

        self.transport = httpx.MockTransport(record)


@pytest.fixture
def state():
    reset_app_state()
    st = get_app_state()
    yield st
    reset_app_state()


@pytest.fixture
def engines(state, tmp_path):
    db_path = tmp_path / "demo.db"
    setup_demo_db(db_path)
    factory = RecordingEngineFactory(db_path)
    state.engine_factory = factory
    return factory


@pytest.fixture
def http(state):
    def install(handler):
        recorder = RecordingTransport(handler)
        state.http_transport = recorder.transport
        return recorder

    return install


@pytest.fixture
def client(state):
    from explorer.main import app

    return TestClient(app)
