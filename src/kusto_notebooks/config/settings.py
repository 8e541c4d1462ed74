from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional
import yaml
from dotenv import load_dotenv

load_dotenv()

DEFAULT_DOCUMENT_TYPES = ["kusto-notebook", "kusto-notebook-kql", "kusto-interactive"]

def _env(key: str, default: Optional[str] = None) -> Optional[str]:
    return os.environ.get(key, default)

def _env_list(key: str, default: List[str]) -> List[str]:
    val = os.environ.get(key)
    if not val:
        return default
    return [x.strip() for x in val.split(",") if x.strip()]

@dataclass(frozen=True)
class Settings:
    env: str
    log_level: str
    log_file: Optional[str]

    # Persisted connection set + last-used records
    connections_file: str

    # Query engine client
    request_timeout_seconds: float
    aad_scope: str
    app_insights_endpoint: str

    # Document types a kernel is registered for on activation
    document_types: List[str]

def load_settings(config_dir: str = "config") -> Settings:
    app_env = _env("APP_ENV", "dev")
    cfg_path = Path(config_dir) / f"{app_env}.yaml"
    if not cfg_path.exists():
        raise FileNotFoundError(f"Config not found: {cfg_path}")

    cfg = yaml.safe_load(cfg_path.read_text(encoding="utf-8")) or {}
    app_cfg = cfg.get("app") or {}
    store_cfg = cfg.get("storage") or {}
    kusto_cfg = cfg.get("kusto") or {}

    log_file = _env("LOG_FILE", app_cfg.get("log_file"))

    return Settings(
        env=app_env,
        log_level=_env("LOG_LEVEL", str(app_cfg.get("log_level", "INFO"))),
        log_file=log_file or None,
        connections_file=_env(
            "CONNECTIONS_FILE", str(store_cfg.get("connections_file", ".kusto/connections.json"))
        ),
        request_timeout_seconds=float(
            _env("KUSTO_REQUEST_TIMEOUT", str(kusto_cfg.get("request_timeout_seconds", 240)))
        ),
        aad_scope=_env(
            "KUSTO_AAD_SCOPE", str(kusto_cfg.get("aad_scope", "https://management.core.windows.net/.default"))
        ),
        app_insights_endpoint=_env(
            "APP_INSIGHTS_ENDPOINT", str(kusto_cfg.get("app_insights_endpoint", "https://api.applicationinsights.io"))
        ),
        document_types=_env_list(
            "KUSTO_DOCUMENT_TYPES", list(kusto_cfg.get("document_types") or DEFAULT_DOCUMENT_TYPES)
        ),
    )
