from typing import Optional


PROVIDER_LABELS = {
    "postgresql": "PostgreSQL",
    "mysql": "MySQL",
    "supabase": "Supabase",
    "firebase": "Firebase",
}


class GatewayError(Exception):
    """Base error rendered to clients as ``{"error": message}``."""

    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidRequestError(GatewayError):
    status_code = 400


class MissingFieldsError(InvalidRequestError):
    def __init__(self, what: str):
        super().__init__(f"Missing {what}")


class UnsupportedProviderError(GatewayError):
    status_code = 400

    def __init__(self, provider: Optional[str]):
        super().__init__(f"Unsupported provider: {provider}")
        self.provider = provider


class ProviderError(GatewayError):
    """A failure raised while talking to a database or REST backend."""

    status_code = 500

    def __init__(self, provider: str, detail: str):
        label = PROVIDER_LABELS.get(provider, provider)
        super().__init__(f"{label} error: {detail}")
        self.provider = provider
        self.detail = detail
