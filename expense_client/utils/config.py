"""
Configuration management with schema validation and atomic writes.
Single source of truth for the expense client configuration.
"""

import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ConfigError
from .logger import get_logger

logger = get_logger(__name__)

# Load environment variables
load_dotenv()

DATA_DIR = Path("data")
SETTINGS_FILE = DATA_DIR / "settings.yaml"

DEFAULT_API_BASE_URL = "http://localhost:8080/api"


def origin_of(url: str) -> str:
    """scheme://host[:port] of a URL, with default ports dropped."""
    parsed = urlparse(url)
    scheme = (parsed.scheme or "").lower()
    host = (parsed.hostname or "").lower()
    port = parsed.port
    if port is None or (scheme, port) in (("http", 80), ("https", 443)):
        return f"{scheme}://{host}"
    return f"{scheme}://{host}:{port}"


class AppSettings(BaseModel):
    name: str = "expense-client"
    version: str = "1.0.0"
    environment: str = "production"


class ApiSettings(BaseModel):
    base_url: str = DEFAULT_API_BASE_URL
    connection_timeout: float = 10
    read_timeout: float = 30


class OAuthSettings(BaseModel):
    """Popup/redirect hand-off. Empty URLs are derived from the API base URL."""
    authorization_url: Optional[str] = None
    allowed_origin: Optional[str] = None
    popup_name: str = "GoogleAuthLogin"
    popup_width: int = 600
    popup_height: int = 700
    provider: str = "google"


class RouteSettings(BaseModel):
    login: str = "/login"
    landing: str = "/dashboard"
    oauth_redirect: str = "/oauth2/redirect"


class SessionSettings(BaseModel):
    store_path: str = "data/session.json"


class PaginationSettings(BaseModel):
    page_size: int = Field(default=10, gt=0)
    my_expenses_sort: str = "expenseDate,desc"
    pending_sort: str = "createdAt,asc"


class LandingSettings(BaseModel):
    host: str = "127.0.0.1"
    port: int = 8765


class LoggingSettings(BaseModel):
    level: str = "INFO"
    format: str = "json"
    file_path: Optional[str] = "logs/expense_client.log"
    max_bytes: int = 10485760
    backup_count: int = 5


class Settings(BaseModel):
    app: AppSettings = Field(default_factory=AppSettings)
    api: ApiSettings = Field(default_factory=ApiSettings)
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    routes: RouteSettings = Field(default_factory=RouteSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    pagination: PaginationSettings = Field(default_factory=PaginationSettings)
    landing: LandingSettings = Field(default_factory=LandingSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)

    def backend_root(self) -> str:
        """API base URL without the trailing /api segment."""
        base = self.api.base_url.rstrip("/")
        if base.endswith("/api"):
            base = base[: -len("/api")]
        return base

    def oauth_authorization_url(self) -> str:
        if self.oauth.authorization_url:
            return self.oauth.authorization_url
        return f"{self.backend_root()}/oauth2/authorization/{self.oauth.provider}"

    def oauth_allowed_origin(self) -> str:
        return origin_of(self.oauth.allowed_origin or self.api.base_url)


class ConfigManager:
    """Loads and saves settings.yaml"""

    def __init__(self, settings_path: Optional[Path] = None):
        self.settings_path = Path(settings_path) if settings_path else SETTINGS_FILE
        self._settings: Optional[Settings] = None

    @property
    def settings(self) -> Settings:
        if self._settings is None:
            return self.load_settings_or_default()
        return self._settings

    def _substitute_env_vars(self, value: Any) -> Any:
        """Recursively substitute environment variables"""
        if isinstance(value, str):
            if value.startswith("${") and value.endswith("}"):
                var_expr = value[2:-1]
                if ":" in var_expr:
                    var_name, default = var_expr.split(":", 1)
                    return os.getenv(var_name.strip(), default.strip())
                else:
                    return os.getenv(var_expr, value)
        elif isinstance(value, dict):
            return {k: self._substitute_env_vars(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [self._substitute_env_vars(item) for item in value]
        return value

    def load_settings(self) -> Settings:
        """Load and validate settings.yaml"""
        if not self.settings_path.exists():
            raise ConfigError(f"Settings file not found: {self.settings_path}")

        try:
            with open(self.settings_path, "r", encoding="utf-8") as f:
                raw_data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {self.settings_path}: {e}")

        processed_data = self._substitute_env_vars(raw_data)
        try:
            self._settings = Settings(**processed_data)
        except PydanticValidationError as e:
            raise ConfigError(f"Invalid settings in {self.settings_path}: {e}")
        return self._settings

    def load_settings_or_default(self) -> Settings:
        """Like load_settings, but falls back to defaults when the file is absent."""
        if not self.settings_path.exists():
            logger.info("Settings file not found, using defaults", path=str(self.settings_path))
            self._settings = Settings()
            return self._settings
        return self.load_settings()

    def save_settings(self, settings: Settings) -> None:
        """Atomically save settings to YAML"""
        data = settings.model_dump(exclude_unset=True)
        self._atomic_write(self.settings_path, data)
        self._settings = settings

    def _atomic_write(self, path: Path, data: Dict[str, Any]) -> None:
        """Write YAML file atomically"""
        # Temp file in the same directory keeps the move on one filesystem
        dir_path = path.parent
        dir_path.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(mode="w", dir=dir_path, delete=False, encoding="utf-8") as tf:
            yaml.dump(data, tf, default_flow_style=False, sort_keys=False, allow_unicode=True)
            temp_path = Path(tf.name)

        try:
            shutil.move(str(temp_path), str(path))
        except OSError as e:
            if temp_path.exists():
                temp_path.unlink()
            raise ConfigError(f"Failed to save config to {path}: {str(e)}")
