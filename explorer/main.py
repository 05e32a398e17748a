import time
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from explorer.api.routes import database, proxy, schema, spec, workspace
from explorer.api.services.app_state import get_app_state
from explorer.api.services.errors import GatewayError
import structlog

logger = structlog.get_logger()

app = FastAPI(title="OpenAPI & Database Explorer")

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def add_process_time_header(request, call_next):
    start_time = time.perf_counter()
    response = await call_next(request)
    process_time = (time.perf_counter() - start_time) * 1000
    response.headers["X-Process-Time"] = str(int(process_time))
    logger.info("request", path=str(request.url.path), method=request.method, status=response.status_code, ms=int(process_time))
    return response


# Every failure leaves the API as {"error": "..."}
@app.exception_handler(GatewayError)
async def gateway_error_handler(request: Request, exc: GatewayError):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError):
    problems = "; ".join(
        f"{'.'.join(str(p) for p in err['loc'] if p != 'body')}: {err['msg']}" for err in exc.errors()
    )
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": str(exc.detail)})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=str(request.url.path), error=str(exc))
    return JSONResponse(status_code=500, content={"error": str(exc) or "Internal server error"})


# Routers
app.include_router(database.router, prefix="/api", tags=["database"])
app.include_router(proxy.router, prefix="/api", tags=["proxy"])
app.include_router(spec.router, prefix="/api", tags=["spec"])
app.include_router(schema.router, prefix="/api", tags=["schema"])
app.include_router(workspace.router, prefix="/api", tags=["workspace"])


@app.get("/health")
async def health():
    return {"status": "ok", "workspaces": get_app_state().workspaces.stats()}



# Uvicorn entrypoint: uvicorn explorer.main:app --reload
