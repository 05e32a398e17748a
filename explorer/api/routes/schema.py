from fastapi import APIRouter
from ..services.errors import InvalidRequestError, MissingFieldsError
from ..services.models import SchemaParseRequest, SchemaResponse
from ..services.schema_parser import describe_schema, parse_database_yaml

router = APIRouter()


@router.post("/schema/parse", response_model=SchemaResponse)
async def parse_schema(payload: SchemaParseRequest):
    if not payload.content:
        raise MissingFieldsError("content")
    schema = parse_database_yaml(payload.content)
    if schema is None:
        raise InvalidRequestError("Failed to parse database schema. Expected YAML with 'database' and 'tables'.")
    return describe_schema(schema, search=payload.search)
