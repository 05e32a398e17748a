from typing import Any, Dict, Optional
import httpx
import structlog
from .app_state import AppState
from .models import ProxyResponse

logger = structlog.get_logger()

BODYLESS_METHODS = {"GET", "HEAD"}


class ProxyService:
    """Forwards a browser-composed request so it is not subject to CORS."""

    def __init__(self, state: AppState):
        self.state = state

    async def forward(
        self,
        url: str,
        method: str = "GET",
        headers: Optional[Dict[str, str]] = None,
        body: Any = None,
    ) -> ProxyResponse:
        method = method.upper()
        send_body = body is not None and method not in BODYLESS_METHODS
        async with self.state.http_client() as client:
            response = await client.request(
                method,
                url,
                headers=headers or {},
                json=body if send_body else None,
            )
        try:
            data = response.json()
        except ValueError:
            data = None
        logger.info("proxy.forward", method=method, url=url, status=response.status_code)
        return ProxyResponse(status=response.status_code, status_text=response.reason_phrase, body=data)
