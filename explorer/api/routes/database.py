from fastapi import APIRouter
from ..services.app_state import get_app_state
from ..services.errors import MissingFieldsError
from ..services.gateway import DatabaseGateway, parse_connection
from ..services.models import (
    DbDeleteRequest,
    DbQueryRequest,
    DbUpdateRequest,
    DeleteResult,
    QueryResult,
    UpdateResult,
)

router = APIRouter()


def _blank(value) -> bool:
    return value is None or value == ""


@router.post("/db-query", response_model=QueryResult)
async def run_query(payload: DbQueryRequest):
    if not payload.connection or _blank(payload.query):
        raise MissingFieldsError("connection or query")
    connection = parse_connection(payload.connection)
    gateway = DatabaseGateway(get_app_state())
    return await gateway.query(connection, payload.query, page=payload.page, page_size=payload.page_size)


@router.post("/db-update", response_model=UpdateResult)
async def update_cell(payload: DbUpdateRequest):
    required = (payload.table_name, payload.primary_key, payload.primary_key_value, payload.column)
    if not payload.connection or any(_blank(v) for v in required):
        raise MissingFieldsError("required update parameters")
    connection = parse_connection(payload.connection)
    gateway = DatabaseGateway(get_app_state())
    await gateway.update_cell(
        connection,
        payload.table_name,
        payload.primary_key,
        payload.primary_key_value,
        payload.column,
        payload.new_value,
    )
    return UpdateResult(success=True)


@router.post("/db-delete", response_model=DeleteResult)
async def delete_rows(payload: DbDeleteRequest):
    if (
        not payload.connection
        or _blank(payload.table_name)
        or _blank(payload.primary_key)
        or payload.primary_key_values is None
    ):
        raise MissingFieldsError("required deletion parameters")
    connection = parse_connection(payload.connection)
    gateway = DatabaseGateway(get_app_state())
    return await gateway.delete_rows(connection, payload.table_name, payload.primary_key, payload.primary_key_values)
