import sqlite3

import httpx
import pytest
from fastapi.testclient import TestClient

from tests.conftest import FIREBASE_CONN, PG_CONN, SUPABASE_CONN
from tests.test_spec_parser import NUMERIC_KEYS_YAML, PETSTORE_YAML
from tests.test_schema_parser import SHOP_YAML


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    assert r.json()["status"] == "ok"
    assert "X-Process-Time" in r.headers


def test_query_end_to_end(client, engines):
    r = client.post("/api/db-query", json={"connection": PG_CONN, "query": "SELECT * FROM users", "page": 2, "pageSize": 25})
    assert r.status_code == 200
    data = r.json()
    assert data["page"] == 2
    assert data["pageSize"] == 25
    assert data["totalCount"] == 60
    assert len(data["rows"]) == 25
    assert [s for s, _ in engines.statements] == [
        "SELECT COUNT(*) FROM users",
        "SELECT * FROM users LIMIT ? OFFSET ?",
    ]


def test_query_uses_default_page_size(client, engines):
    r = client.post("/api/db-query", json={"connection": PG_CONN, "query": "SELECT * FROM users"})
    assert r.status_code == 200
    assert r.json()["pageSize"] == 50
    assert len(r.json()["rows"]) == 50


@pytest.mark.parametrize("path,body", [
    ("/api/db-query", {"query": "SELECT * FROM users"}),
    ("/api/db-update", {"connection": PG_CONN, "tableName": "users", "primaryKey": "id", "column": "email"}),
    ("/api/db-delete", {"connection": PG_CONN, "tableName": "users", "primaryKey": "id"}),
])
def test_missing_fields_are_rejected_before_any_provider(client, engines, path, body):
    r = client.post(path, json=body)
    assert r.status_code == 400
    assert r.json()["error"].startswith("Missing")
    assert engines.calls == []


def test_missing_connection_fields(client, engines):
    r = client.post("/api/db-query", json={"connection": {"provider": "postgresql", "host": "h"}, "query": "SELECT * FROM users"})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Missing connection fields:")
    assert "database" in r.json()["error"]


@pytest.mark.parametrize("path,body", [
    ("/api/db-query", {"query": "SELECT * FROM users"}),
    ("/api/db-update", {"tableName": "users", "primaryKey": "id", "primaryKeyValue": 1, "column": "email", "newValue": "x"}),
    ("/api/db-delete", {"tableName": "users", "primaryKey": "id", "primaryKeyValues": [1]}),
])
def test_unsupported_provider_is_a_client_error(client, path, body):
    r = client.post(path, json={**body, "connection": {"provider": "oracle", "host": "db"}})
    assert r.status_code == 400
    assert r.json() == {"error": "Unsupported provider: oracle"}


def test_malformed_query_is_rejected(client, engines):
    r = client.post("/api/db-query", json={"connection": PG_CONN, "query": "DELETE FROM users"})
    assert r.status_code == 400
    assert engines.calls == []


def test_provider_failure_is_a_server_error(client, engines):
    r = client.post("/api/db-query", json={"connection": PG_CONN, "query": "SELECT * FROM missing"})
    assert r.status_code == 500
    assert r.json()["error"].startswith("PostgreSQL error: ")


def test_update_endpoint(client, engines):
    body = {
        "connection": PG_CONN,
        "tableName": "users",
        "primaryKey": "id",
        "primaryKeyValue": 3,
        "column": "status",
        "newValue": "banned",
    }
    r = client.post("/api/db-update", json=body)
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert engines.rows("SELECT status FROM users WHERE id = 3") == [("banned",)]


@pytest.mark.parametrize("conn", [PG_CONN, {**PG_CONN, "provider": "mysql"}, SUPABASE_CONN, FIREBASE_CONN])
def test_empty_delete_contacts_nobody(client, engines, http, conn):
    recorder = http(lambda request: httpx.Response(200, json=[]))
    r = client.post("/api/db-delete", json={"connection": conn, "tableName": "users", "primaryKey": "id", "primaryKeyValues": []})
    assert r.status_code == 200
    assert r.json() == {"success": True, "deletedCount": 0, "failedIds": []}
    assert engines.calls == []
    assert recorder.requests == []


def test_firebase_delete_endpoint(client, http):
    recorder = http(lambda request: httpx.Response(200, json=None))
    r = client.post("/api/db-delete", json={"connection": FIREBASE_CONN, "tableName": "items", "primaryKey": "_id", "primaryKeyValues": ["a", "b"]})
    assert r.status_code == 200
    assert r.json()["deletedCount"] == 2
    assert len(recorder.requests) == 2


def test_proxy_forwards_request(client, http):
    def handler(request):
        return httpx.Response(201, json={"echo": request.method, "auth": request.headers.get("authorization")})

    http(handler)
    r = client.post("/api/proxy", json={
        "url": "https://api.example.com/pets",
        "method": "post",
        "headers": {"Authorization": "Bearer tok"},
        "body": {"name": "Rex"},
    })
    assert r.status_code == 200
    assert r.json() == {"status": 201, "statusText": "Created", "body": {"echo": "POST", "auth": "Bearer tok"}}


def test_proxy_non_json_body_is_null(client, http):
    http(lambda request: httpx.Response(200, text="<html></html>"))
    r = client.post("/api/proxy", json={"url": "https://api.example.com/", "method": "GET"})
    assert r.json()["body"] is None


def test_proxy_failure(client, http):
    def handler(request):
        raise httpx.ConnectError("unreachable", request=request)

    http(handler)
    r = client.post("/api/proxy", json={"url": "https://down.example.com", "method": "GET"})
    assert r.status_code == 500
    assert r.json() == {"status": 0, "statusText": "Proxy Error", "error": "unreachable"}


def test_spec_parse_endpoint(client):
    r = client.post("/api/spec/parse", json={"content": PETSTORE_YAML})
    assert r.status_code == 200
    data = r.json()
    assert data["title"] == "Petstore"
    assert data["baseUrl"] == "http://localhost:3000/api/v1"
    assert [t["name"] for t in data["tags"]] == ["pets", "admin", "default"]
    assert data["tags"][0]["description"] == "Everything about pets"
    assert data["tags"][2]["operations"][1] == {
        "path": "/health",
        "method": "get",
        "summary": "/health",
        "operationId": "health",
        "deprecated": False,
    }


def test_spec_parse_failure(client):
    r = client.post("/api/spec/parse", json={"content": "key: [oops"})
    assert r.status_code == 400
    assert r.json() == {"error": "Failed to parse OpenAPI file. Ensure it is valid JSON or YAML."}


def test_spec_scaffold_endpoint(client):
    r = client.post("/api/spec/scaffold", json={
        "content": PETSTORE_YAML,
        "path": "/pets/{petId}",
        "method": "get",
        "pathParams": {"petId": "7"},
        "bearerToken": "tok",
    })
    assert r.status_code == 200
    data = r.json()
    assert data["url"] == "http://localhost:3000/api/v1/pets/7"
    assert data["method"] == "GET"
    assert data["headers"] == {"Content-Type": "application/json", "Authorization": "Bearer tok"}
    assert data["exampleBody"] is None
    assert data["codeSamples"]["curl"].startswith('curl -X GET "http://localhost:3000/api/v1/pets/7"')


def test_spec_scaffold_uses_body_rows(client):
    r = client.post("/api/spec/scaffold", json={
        "content": PETSTORE_YAML,
        "path": "/pets",
        "method": "post",
        "bodyRows": [{"key": "age", "value": "2", "type": "number", "enabled": True}],
    })
    data = r.json()
    assert data["exampleBody"] == {"name": "string", "age": 0, "vaccinated": None, "color": "brown"}
    assert '"age": 2' in data["codeSamples"]["curl"]


def test_spec_scaffold_unknown_operation(client):
    r = client.post("/api/spec/scaffold", json={"content": PETSTORE_YAML, "path": "/nope", "method": "get"})
    assert r.status_code == 404
    assert "error" in r.json()


def test_code_samples_endpoint(client):
    r = client.post("/api/code-samples", json={"url": "http://x/y", "method": "delete"})
    assert r.status_code == 200
    assert set(r.json()) == {"curl", "fetch", "python"}
    assert r.json()["curl"] == 'curl -X DELETE "http://x/y"'


def test_schema_parse_endpoint(client):
    r = client.post("/api/schema/parse", json={"content": SHOP_YAML, "search": "cust"})
    assert r.status_code == 200
    data = r.json()
    assert data["database"]["engine"] == "postgresql"
    assert data["matches"] == ["customers"]
    assert data["tables"]["customers"]["columns"]["email"]["unique"] is True


def test_schema_parse_failure(client):
    r = client.post("/api/schema/parse", json={"content": "just: text"})
    assert r.status_code == 400


def test_workspace_round_trip_drops_connection(client):
    assert client.get("/api/workspace/main").status_code == 404
    r = client.put("/api/workspace/main", json={
        "specContent": PETSTORE_YAML,
        "tabs": [{"path": "/pets", "method": "get"}],
        "activeTab": "/pets:get",
        "connection": PG_CONN,
    })
    assert r.status_code == 200
    loaded = client.get("/api/workspace/main").json()
    assert loaded["specContent"] == PETSTORE_YAML
    assert loaded["activeTab"] == "/pets:get"
    assert loaded["updatedAt"] is not None
    assert "connection" not in loaded
    assert client.delete("/api/workspace/main").json() == {"success": True}
    assert client.get("/api/workspace/main").status_code == 404


def test_invalid_body_is_a_400(client):
    r = client.post("/api/db-delete", json={"connection": PG_CONN, "tableName": "t", "primaryKey": "id", "primaryKeyValues": "a"})
    assert r.status_code == 400
    assert r.json()["error"].startswith("Invalid request")


def test_spec_endpoints_accept_unquoted_status_codes(client):
    parsed = client.post("/api/spec/parse", json={"content": NUMERIC_KEYS_YAML})
    assert parsed.status_code == 200
    assert parsed.json()["errors"] == {"400": {"message": "Bad input"}}
    assert parsed.json()["tags"][0]["operations"][0]["operationId"] == "7"

    scaffold = client.post("/api/spec/scaffold", json={"content": NUMERIC_KEYS_YAML, "path": "/orders", "method": "get"})
    assert scaffold.status_code == 200
    assert list(scaffold.json()["responses"]) == ["200", "404"]


def test_binary_rows_serialize(client, engines):
    conn = sqlite3.connect(engines.db_path)
    conn.execute("CREATE TABLE files (id INTEGER PRIMARY KEY, data BLOB)")
    conn.execute("INSERT INTO files (id, data) VALUES (1, ?)", (b"\xff\xfe\x00",))
    conn.commit()
    conn.close()

    r = client.post("/api/db-query", json={"connection": PG_CONN, "query": "SELECT * FROM files"})
    assert r.status_code == 200
    assert r.json()["rows"] == [{"id": 1, "data": "//4A"}]


def test_unexpected_errors_are_json(state, monkeypatch):
    from explorer.main import app

    def broken(workspace_id):
        raise RuntimeError("store unavailable")

    monkeypatch.setattr(state.workspaces, "load", broken)
    client = TestClient(app, raise_server_exceptions=False)
    r = client.get("/api/workspace/main")
    assert r.status_code == 500
    assert r.json() == {"error": "store unavailable"}


def test_schema_parse_reports_primary_keys(client):
    r = client.post("/api/schema/parse", json={"content": SHOP_YAML})
    assert r.json()["primaryKeys"] == {"customers": "id", "orders": "id"}
