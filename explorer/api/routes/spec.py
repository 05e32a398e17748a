from fastapi import APIRouter, HTTPException
from ..services.app_state import get_app_state
from ..services.code_samples import generate_all
from ..services.errors import InvalidRequestError, MissingFieldsError
from ..services.models import (
    CodeSampleRequest,
    CodeSamples,
    OperationSummary,
    ScaffoldRequest,
    ScaffoldResponse,
    SpecNavigationResponse,
    SpecParseRequest,
    SpecTag,
)
from ..services.spec_parser import (
    SpecModel,
    body_from_rows,
    parse_spec,
    request_headers,
    substitute_path,
)

router = APIRouter()

PARSE_FAILURE = "Failed to parse OpenAPI file. Ensure it is valid JSON or YAML."


def _load(content) -> SpecModel:
    if not content:
        raise MissingFieldsError("content")
    spec = parse_spec(content)
    if spec is None:
        raise InvalidRequestError(PARSE_FAILURE)
    return spec


@router.post("/spec/parse", response_model=SpecNavigationResponse)
async def parse_document(payload: SpecParseRequest):
    spec = _load(payload.content)
    descriptions = spec.tag_descriptions()
    tags = [
        SpecTag(
            name=name,
            description=descriptions.get(name, ""),
            operations=[
                OperationSummary(
                    path=ref.path,
                    method=ref.method,
                    summary=ref.summary,
                    operation_id=ref.operation_id,
                    deprecated=bool(ref.operation.get("deprecated", False)),
                )
                for ref in refs
            ],
        )
        for name, refs in spec.operations_by_tag().items()
    ]
    return SpecNavigationResponse(
        title=spec.title,
        description=spec.description,
        version=spec.version,
        base_url=spec.base_url(get_app_state().default_origin),
        servers=spec.servers,
        tags=tags,
        errors=spec.errors,
    )


@router.post("/spec/scaffold", response_model=ScaffoldResponse)
async def scaffold_request(payload: ScaffoldRequest):
    if not payload.path or not payload.method:
        raise MissingFieldsError("path or method")
    spec = _load(payload.content)
    ref = spec.get_operation(payload.path, payload.method)
    if ref is None:
        raise HTTPException(status_code=404, detail=f"Operation not found: {payload.method.upper()} {payload.path}")

    url = spec.base_url(get_app_state().default_origin) + substitute_path(ref.path, payload.path_params)
    headers = request_headers(payload.bearer_token)
    example = spec.example_body(ref)
    body = body_from_rows(payload.body_rows) if payload.body_rows is not None else example
    return ScaffoldResponse(
        url=url,
        method=ref.method.upper(),
        headers=headers,
        parameters=spec.parameters(ref),
        example_body=example,
        responses=ref.responses,
        code_samples=generate_all(url, ref.method, headers, body),
    )


@router.post("/code-samples", response_model=CodeSamples)
async def code_samples(payload: CodeSampleRequest):
    if not payload.url:
        raise MissingFieldsError("url")
    return generate_all(payload.url, payload.method, payload.headers, payload.body)
