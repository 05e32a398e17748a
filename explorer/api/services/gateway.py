"""Database gateway: one abstract query/update/delete request, four provider protocols.

PostgreSQL and MySQL are reached through a short-lived SQLAlchemy engine per
call (run in the threadpool since the drivers block); Supabase and Firebase
through their REST APIs with httpx. Every provider branch converts its own
failures into a ``ProviderError`` so nothing escapes half-open.
"""

import base64
import json
import re
from typing import Any, Dict, List, Optional, Sequence
import httpx
import structlog
from pydantic import ValidationError
from sqlalchemy import bindparam, text
from sqlalchemy.engine import Engine
from starlette.concurrency import run_in_threadpool
from .app_state import AppState
from .errors import (
    GatewayError,
    InvalidRequestError,
    MissingFieldsError,
    ProviderError,
    UnsupportedProviderError,
)
from .models import (
    CONNECTION_ADAPTER,
    SUPPORTED_PROVIDERS,
    ConnectionDescriptor,
    DeleteResult,
    FirebaseConnection,
    QueryResult,
    SqlConnection,
    SupabaseConnection,
)

logger = structlog.get_logger()

_IDENTIFIER = r"[A-Za-z_][\w$-]*"
SELECT_ALL_RE = re.compile(
    rf"^\s*SELECT\s+\*\s+FROM\s+({_IDENTIFIER}(?:\.{_IDENTIFIER})?)\s*;?\s*$",
    re.IGNORECASE,
)


def parse_connection(raw: Any) -> ConnectionDescriptor:
    """Validate a raw connection mapping into its provider variant."""
    if not isinstance(raw, dict) or not raw:
        raise MissingFieldsError("connection")
    provider = raw.get("provider")
    if provider not in SUPPORTED_PROVIDERS:
        raise UnsupportedProviderError(provider)
    try:
        return CONNECTION_ADAPTER.validate_python(raw)
    except ValidationError as e:
        missing = [str(err["loc"][-1]) for err in e.errors() if err["type"] == "missing"]
        if missing:
            raise MissingFieldsError(f"connection fields: {', '.join(missing)}")
        raise InvalidRequestError(f"Invalid {provider} connection: {e.errors()[0]['msg']}")


def extract_table(raw_query: Optional[str]) -> str:
    """Table name of a ``SELECT * FROM <table>`` query; nothing else is accepted."""
    match = SELECT_ALL_RE.match(raw_query or "")
    if not match:
        raise InvalidRequestError("Unsupported query: only 'SELECT * FROM <table>' is accepted")
    return match.group(1)


def parse_content_range(header: Optional[str], fallback: int) -> int:
    # "0-49/237" -> 237; "*/0" -> 0; "0-9/*" -> fallback
    if not header or "/" not in header:
        return fallback
    try:
        return int(header.rsplit("/", 1)[1])
    except ValueError:
        return fallback


def firebase_rows(data: Any) -> List[Dict[str, Any]]:
    if isinstance(data, dict):
        entries = list(data.items())
    elif isinstance(data, list):
        # Firebase returns arrays for sequential integer keys
        entries = [(str(i), v) for i, v in enumerate(data) if v is not None]
    else:
        return []
    rows = []
    for key, value in entries:
        if isinstance(value, dict):
            rows.append({"_id": key, **value})
        else:
            rows.append({"_id": key, "value": value})
    return rows


def postgrest_literal(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


PLAIN_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def quote_identifier(engine: Engine, name: str) -> str:
    # Plain names go in bare so PostgreSQL folds `Users` to `users`
    preparer = engine.dialect.identifier_preparer
    if PLAIN_IDENTIFIER_RE.match(name) and name.lower() not in preparer.reserved_words:
        return name
    return preparer.quote_identifier(name)


def quote_table(engine: Engine, table: str) -> str:
    return ".".join(quote_identifier(engine, part) for part in table.split("."))


def key_literal(value: Any) -> str:
    """Primary key as it appears in a PostgREST filter or a Firebase path."""
    if isinstance(value, str):
        return value
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return json.dumps(value)


def json_safe(value: Any) -> Any:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return base64.b64encode(bytes(value)).decode("ascii")
    return value


class DatabaseGateway:
    def __init__(self, state: AppState):
        self.state = state
        cfg = state.config["gateway"]
        self.default_page_size = int(cfg["default_page_size"])
        self.max_page_size = int(cfg["max_page_size"])
        self.query_pool_size = int(cfg["query_pool_size"])

    # -- public operations --------------------------------------------------

    async def query(
        self,
        connection: ConnectionDescriptor,
        raw_query: str,
        page: int = 1,
        page_size: Optional[int] = None,
    ) -> QueryResult:
        table = extract_table(raw_query)
        page, page_size = self._paging(page, page_size)
        logger.info("gateway.query", provider=connection.provider, table=table, page=page, page_size=page_size)
        try:
            if isinstance(connection, SqlConnection):
                return await run_in_threadpool(self._sql_query, connection, table, page, page_size)
            elif isinstance(connection, SupabaseConnection):
                return await self._supabase_query(connection, table, page, page_size)
            elif isinstance(connection, FirebaseConnection):
                return await self._firebase_query(connection, table, page_size)
            else:
                raise UnsupportedProviderError(getattr(connection, "provider", None))
        except GatewayError:
            raise
        except Exception as e:
            raise self._provider_failure(connection, "query", e) from e

    async def update_cell(
        self,
        connection: ConnectionDescriptor,
        table: str,
        primary_key: str,
        primary_key_value: Any,
        column: str,
        new_value: Any,
    ) -> None:
        logger.info("gateway.update", provider=connection.provider, table=table, column=column)
        try:
            if isinstance(connection, SqlConnection):
                await run_in_threadpool(
                    self._sql_update, connection, table, primary_key, primary_key_value, column, new_value
                )
            elif isinstance(connection, SupabaseConnection):
                await self._supabase_update(connection, table, primary_key, primary_key_value, column, new_value)
            elif isinstance(connection, FirebaseConnection):
                await self._firebase_update(connection, table, primary_key_value, column, new_value)
            else:
                raise UnsupportedProviderError(getattr(connection, "provider", None))
        except GatewayError:
            raise
        except Exception as e:
            raise self._provider_failure(connection, "update", e) from e

    async def delete_rows(
        self,
        connection: ConnectionDescriptor,
        table: str,
        primary_key: str,
        primary_key_values: Sequence[Any],
    ) -> DeleteResult:
        if not primary_key_values:
            return DeleteResult(deleted_count=0)
        values = list(primary_key_values)
        logger.info("gateway.delete", provider=connection.provider, table=table, count=len(values))
        try:
            if isinstance(connection, SqlConnection):
                deleted = await run_in_threadpool(self._sql_delete, connection, table, primary_key, values)
                return DeleteResult(deleted_count=deleted)
            elif isinstance(connection, SupabaseConnection):
                return await self._supabase_delete(connection, table, primary_key, values)
            elif isinstance(connection, FirebaseConnection):
                return await self._firebase_delete(connection, table, values)
            else:
                raise UnsupportedProviderError(getattr(connection, "provider", None))
        except GatewayError:
            raise
        except Exception as e:
            raise self._provider_failure(connection, "delete", e) from e

    # -- helpers ------------------------------------------------------------

    def _paging(self, page: Optional[int], page_size: Optional[int]):
        page = 1 if page is None else int(page)
        page_size = self.default_page_size if page_size is None else int(page_size)
        if page < 1 or page_size < 1:
            raise InvalidRequestError("page and pageSize must be positive integers")
        return page, min(page_size, self.max_page_size)

    def _provider_failure(self, connection: ConnectionDescriptor, operation: str, exc: Exception) -> ProviderError:
        logger.error("gateway.provider_error", provider=connection.provider, operation=operation, error=str(exc))
        return ProviderError(connection.provider, str(exc))

    def _raise_for_status(self, connection: ConnectionDescriptor, response: httpx.Response) -> None:
        if not response.is_success:
            raise ProviderError(connection.provider, response.text or f"HTTP {response.status_code}")

    def _engine(self, connection: SqlConnection, pool_size: int = 1) -> Engine:
        return self.state.engine_factory(
            connection, pool_size=pool_size, connect_timeout=self.state.connect_timeout
        )

    # -- PostgreSQL / MySQL -------------------------------------------------

    def _sql_query(self, connection: SqlConnection, table: str, page: int, page_size: int) -> QueryResult:
        engine = self._engine(connection, pool_size=self.query_pool_size)
        try:
            target = quote_table(engine, table)
            with engine.connect() as conn:
                total = conn.execute(text(f"SELECT COUNT(*) FROM {target}")).scalar_one()
                rs = conn.execute(
                    text(f"SELECT * FROM {target} LIMIT :limit OFFSET :offset"),
                    {"limit": page_size, "offset": (page - 1) * page_size},
                )
                columns = list(rs.keys())
                rows = [{k: json_safe(v) for k, v in r._mapping.items()} for r in rs]
        finally:
            engine.dispose()
        return QueryResult(columns=columns, rows=rows, total_count=int(total), page=page, page_size=page_size)

    def _sql_update(
        self,
        connection: SqlConnection,
        table: str,
        primary_key: str,
        primary_key_value: Any,
        column: str,
        new_value: Any,
    ) -> int:
        if isinstance(new_value, (dict, list)):
            new_value = json.dumps(new_value)
        engine = self._engine(connection)
        try:
            stmt = text(
                f"UPDATE {quote_table(engine, table)} SET {quote_identifier(engine, column)} = :value "
                f"WHERE {quote_identifier(engine, primary_key)} = :pk_value"
            )
            with engine.begin() as conn:
                result = conn.execute(stmt, {"value": new_value, "pk_value": primary_key_value})
                return result.rowcount
        finally:
            engine.dispose()

    def _sql_delete(self, connection: SqlConnection, table: str, primary_key: str, values: List[Any]) -> int:
        engine = self._engine(connection)
        try:
            target = quote_table(engine, table)
            pk = quote_identifier(engine, primary_key)
            if connection.provider == "mysql":
                # Single bound list, expanded by the driver layer
                stmt = text(f"DELETE FROM {target} WHERE {pk} IN :pk_values").bindparams(
                    bindparam("pk_values", expanding=True)
                )
                params: Dict[str, Any] = {"pk_values": values}
            else:
                placeholders = ", ".join(f":pk_{i}" for i in range(len(values)))
                stmt = text(f"DELETE FROM {target} WHERE {pk} IN ({placeholders})")
                params = {f"pk_{i}": v for i, v in enumerate(values)}
            with engine.begin() as conn:
                return conn.execute(stmt, params).rowcount
        finally:
            engine.dispose()

    # -- Supabase -----------------------------------------------------------

    def _supabase_url(self, connection: SupabaseConnection, table: str) -> str:
        return f"{connection.project_url.rstrip('/')}/rest/v1/{table}"

    def _supabase_headers(self, connection: SupabaseConnection, prefer: str) -> Dict[str, str]:
        key = connection.api_key
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
            "Prefer": prefer,
        }

    async def _supabase_query(
        self, connection: SupabaseConnection, table: str, page: int, page_size: int
    ) -> QueryResult:
        async with self.state.http_client() as client:
            response = await client.get(
                self._supabase_url(connection, table),
                params={"select": "*", "limit": page_size, "offset": (page - 1) * page_size},
                headers=self._supabase_headers(connection, "count=exact"),
            )
        self._raise_for_status(connection, response)
        rows = response.json() or []
        return QueryResult(
            columns=list(rows[0].keys()) if rows else [],
            rows=rows,
            total_count=parse_content_range(response.headers.get("content-range"), len(rows)),
            page=page,
            page_size=page_size,
        )

    async def _supabase_update(
        self,
        connection: SupabaseConnection,
        table: str,
        primary_key: str,
        primary_key_value: Any,
        column: str,
        new_value: Any,
    ) -> None:
        async with self.state.http_client() as client:
            response = await client.patch(
                self._supabase_url(connection, table),
                params={primary_key: f"eq.{key_literal(primary_key_value)}"},
                headers=self._supabase_headers(connection, "return=minimal"),
                json={column: new_value},
            )
        self._raise_for_status(connection, response)

    async def _supabase_delete(
        self, connection: SupabaseConnection, table: str, primary_key: str, values: List[Any]
    ) -> DeleteResult:
        in_list = ",".join(postgrest_literal(v) for v in values)
        async with self.state.http_client() as client:
            response = await client.delete(
                self._supabase_url(connection, table),
                params={primary_key: f"in.({in_list})"},
                headers=self._supabase_headers(connection, "return=representation"),
            )
        self._raise_for_status(connection, response)
        return DeleteResult(deleted_count=len(response.json() or []))

    # -- Firebase -----------------------------------------------------------

    def _firebase_url(self, connection: FirebaseConnection, *parts: Any) -> str:
        path = "/".join(key_literal(p) for p in parts)
        return f"{connection.database_url.rstrip('/')}/{path}.json"

    async def _firebase_query(self, connection: FirebaseConnection, collection: str, page_size: int) -> QueryResult:
        async with self.state.http_client() as client:
            response = await client.get(
                self._firebase_url(connection, collection),
                params={"auth": connection.api_key, "orderBy": '"$key"', "limitToFirst": page_size},
            )
        self._raise_for_status(connection, response)
        rows = firebase_rows(response.json())
        # No offset support in the REST API: always the first page, count of what came back
        return QueryResult(
            columns=list(rows[0].keys()) if rows else [],
            rows=rows,
            total_count=len(rows),
            page=1,
            page_size=page_size,
        )

    async def _firebase_update(
        self, connection: FirebaseConnection, table: str, document_id: Any, column: str, new_value: Any
    ) -> None:
        async with self.state.http_client() as client:
            response = await client.put(
                self._firebase_url(connection, table, document_id, column),
                params={"auth": connection.api_key},
                content=json.dumps(new_value),
            )
        self._raise_for_status(connection, response)

    async def _firebase_delete(self, connection: FirebaseConnection, table: str, values: List[Any]) -> DeleteResult:
        failed: List[Any] = []
        async with self.state.http_client() as client:
            for document_id in values:
                response = await client.delete(
                    self._firebase_url(connection, table, document_id),
                    params={"auth": connection.api_key},
                )
                if not response.is_success:
                    failed.append(document_id)
        if failed:
            logger.warning("gateway.partial_delete", provider="firebase", table=table, failed=failed, attempted=len(values))
        return DeleteResult(deleted_count=len(values), failed_ids=failed)
