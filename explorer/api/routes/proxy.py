import httpx
from fastapi import APIRouter
from fastapi.responses import JSONResponse
import structlog
from ..services.app_state import get_app_state
from ..services.errors import MissingFieldsError
from ..services.models import ProxyRequest, ProxyResponse
from ..services.proxy import ProxyService

router = APIRouter()
logger = structlog.get_logger()


@router.post("/proxy", response_model=ProxyResponse)
async def proxy_request(payload: ProxyRequest):
    if not payload.url:
        raise MissingFieldsError("url")
    service = ProxyService(get_app_state())
    try:
        return await service.forward(payload.url, payload.method, payload.headers, payload.body)
    except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
        logger.warning("proxy.failed", url=payload.url, error=str(e))
        return JSONResponse(
            status_code=500,
            content={"status": 0, "statusText": "Proxy Error", "error": str(e) or type(e).__name__},
        )
