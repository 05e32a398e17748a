import os
from typing import Any, Callable, Dict, Optional
import httpx
import yaml
from pathlib import Path
from .workspace_store import WorkspaceStore
from .sql_engine import create_sql_engine


DEFAULTS: Dict[str, Dict[str, Any]] = {
    "gateway": {
        "connect_timeout": 5,
        "query_pool_size": 3,
        "default_page_size": 50,
        "max_page_size": 1000,
    },
    "http": {
        "timeout": 30,
        "default_origin": "http://localhost:3000",
    },
    "workspace": {
        "ttl_seconds": 86400,
        "max_size": 256,
    },
}

ENV_OVERRIDES = {
    "EXPLORER_CONNECT_TIMEOUT": ("gateway", "connect_timeout", int),
    "EXPLORER_HTTP_TIMEOUT": ("http", "timeout", float),
    "EXPLORER_DEFAULT_ORIGIN": ("http", "default_origin", str),
}


class AppState:
    def __init__(self, config_path: Optional[Path] = None):
        self.config = self._load_config(config_path or Path(os.getenv("EXPLORER_CONFIG", "config.yml")))
        ws = self.config["workspace"]
        self.workspaces = WorkspaceStore(max_size=int(ws["max_size"]), ttl=int(ws["ttl_seconds"]))
        # Swapped out in tests for sqlite engines / httpx.MockTransport
        self.engine_factory: Callable[..., Any] = create_sql_engine
        self.http_transport: Optional[httpx.AsyncBaseTransport] = None

    def _load_config(self, cfg_path: Path) -> Dict[str, Any]:
        if cfg_path.exists():
            with open(cfg_path, "r") as f:
                loaded = yaml.safe_load(f) or {}
        else:
            loaded = {}
        cfg = {section: dict(values) for section, values in DEFAULTS.items()}
        for section, values in loaded.items():
            if isinstance(values, dict):
                cfg.setdefault(section, {}).update(values)
        for env_name, (section, key, cast) in ENV_OVERRIDES.items():
            value = os.getenv(env_name)
            if value:
                cfg[section][key] = cast(value)
        return cfg

    @property
    def connect_timeout(self) -> int:
        return int(self.config["gateway"]["connect_timeout"])

    @property
    def http_timeout(self) -> float:
        return float(self.config["http"]["timeout"])

    @property
    def default_origin(self) -> str:
        return str(self.config["http"]["default_origin"])

    def http_client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(timeout=self.http_timeout, transport=self.http_transport)


_state: Optional[AppState] = None


def get_app_state() -> AppState:
    global _state
    if _state is None:
        _state = AppState()
    return _state


def reset_app_state() -> None:
    global _state
    _state = None
