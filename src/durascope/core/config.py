# src/durascope/core/config.py
"""
Configuration schema and loading for durascope.

Uses Pydantic for validation and Dynaconf for multi-source loading.
Settings are frozen (immutable) after construction.
"""

import os
import re
from pathlib import Path
from typing import Any, Literal, Self

from pydantic import BaseModel, Field, field_validator, model_validator

from durascope.contracts.errors import ConfigurationError


class StorageSettings(BaseModel):
    """Azure Storage account holding the task hubs.

    Supports three authentication methods (mutually exclusive):
    1. connection_string - Storage account connection string
    2. sas_token + account_name - Shared Access Signature token
    3. account_name alone - DefaultAzureCredential (az login, managed
       identity, AZURE_CLIENT_ID/AZURE_TENANT_ID/AZURE_CLIENT_SECRET)

    Example configurations:

        # Option 1: Connection string (Azurite, local development)
        connection_string: "${AZURE_STORAGE_CONNECTION_STRING}"

        # Option 2: SAS token
        account_name: mystorageaccount
        sas_token: "${AZURE_STORAGE_SAS_TOKEN}"

        # Option 3: Azure AD identity
        account_name: mystorageaccount
    """

    model_config = {"frozen": True, "extra": "forbid"}

    account_name: str | None = Field(default=None, description="Storage account name")
    connection_string: str | None = Field(default=None, description="Storage account connection string")
    sas_token: str | None = Field(default=None, description="SAS token (requires account_name)")
    endpoint_suffix: str = Field(default="core.windows.net", description="DNS suffix for sovereign clouds")

    @model_validator(mode="after")
    def validate_auth_method(self) -> Self:
        """Ensure exactly one auth method is configured."""
        has_conn_string = _is_set(self.connection_string)
        has_account = _is_set(self.account_name)

        if has_conn_string and has_account:
            raise ValueError("Provide either connection_string or account_name, not both")
        if not has_conn_string and not has_account:
            raise ValueError(
                "No storage account configured. Provide one of: "
                "connection_string, "
                "account_name + sas_token, or "
                "account_name (Azure AD via DefaultAzureCredential)"
            )
        if _is_set(self.sas_token) and not has_account:
            raise ValueError("SAS token auth requires account_name")
        return self

    @property
    def auth_method(self) -> Literal["connection_string", "sas_token", "default_credential"]:
        if _is_set(self.connection_string):
            return "connection_string"
        if _is_set(self.sas_token):
            return "sas_token"
        return "default_credential"

    def service_endpoint(self, service: Literal["table", "queue", "blob"]) -> str:
        """Account endpoint for one storage service.

        Raises:
            ConfigurationError: If only a connection string is configured
        """
        if not _is_set(self.account_name):
            raise ConfigurationError("Service endpoints are derived from account_name, which is not set")
        return f"https://{self.account_name}.{service}.{self.endpoint_suffix}"


class ConcurrencySettings(BaseModel):
    """Limits for fan-out over remote storage calls."""

    model_config = {"frozen": True}

    max_history_fetches: int = Field(
        default=8,
        gt=0,
        description="Maximum concurrent history reads when listing failed orchestrations",
    )
    max_probe_concurrency: int = Field(
        default=8,
        gt=0,
        description="Maximum concurrent resource probes / queue depth reads",
    )


class ServerSettings(BaseModel):
    """MCP server behavior."""

    model_config = {"frozen": True}

    tool_timeout_seconds: float = Field(
        default=120.0,
        gt=0,
        description="Cancel a tool call that runs longer than this",
    )
    page_size: int = Field(default=1000, gt=0, le=1000, description="Table query page size")


class DiagnosticsSettings(BaseModel):
    """Thresholds for diagnose_task_hub."""

    model_config = {"frozen": True}

    queue_backlog_threshold: int = Field(
        default=1000,
        gt=0,
        description="Flag queues whose approximate depth reaches this many messages",
    )


class LoggingSettings(BaseModel):
    """Log output configuration."""

    model_config = {"frozen": True}

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"
    json_output: bool = False
    log_file: str | None = Field(default=None, description="Write logs here instead of stderr")

    @field_validator("level", mode="before")
    @classmethod
    def normalize_level(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.upper()
        return v


class DurascopeSettings(BaseModel):
    """Top-level durascope configuration.

    All settings are validated and frozen after construction.
    """

    model_config = {"frozen": True}

    storage: StorageSettings = Field(description="Storage account holding the task hubs")
    concurrency: ConcurrencySettings = Field(default_factory=ConcurrencySettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    diagnostics: DiagnosticsSettings = Field(default_factory=DiagnosticsSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


def _is_set(value: str | None) -> bool:
    """Whitespace-only strings count as unset."""
    return value is not None and bool(value.strip())


# Regex pattern for ${VAR} or ${VAR:-default} syntax
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Z_][A-Z0-9_]*)(?::-([^}]*))?\}")


def _expand_env_vars(config: dict[str, Any]) -> dict[str, Any]:
    """Recursively expand ${VAR} and ${VAR:-default} patterns in config values.

    Args:
        config: Configuration dict (may contain nested structures)

    Returns:
        New dict with environment variables expanded
    """

    def _expand_string(value: str) -> str:
        def replacer(match: re.Match[str]) -> str:
            env_value = os.environ.get(match.group(1))
            if env_value is not None:
                return env_value
            default = match.group(2)
            if default is not None:
                return default
            # Unresolved: keep the literal so validation reports it
            return match.group(0)

        return _ENV_VAR_PATTERN.sub(replacer, value)

    def _expand_value(value: Any) -> Any:
        if isinstance(value, str):
            return _expand_string(value)
        elif isinstance(value, dict):
            return {k: _expand_value(v) for k, v in value.items()}
        elif isinstance(value, list):
            return [_expand_value(item) for item in value]
        else:
            return value

    return {k: _expand_value(v) for k, v in config.items()}


def _lower_keys(value: Any) -> Any:
    if isinstance(value, dict):
        return {str(k).lower(): _lower_keys(v) for k, v in value.items()}
    return value


def load_settings(config_path: Path) -> DurascopeSettings:
    """Load settings from a YAML file with environment variable overrides.

    Precedence:
    1. Environment variables (DURASCOPE_*) - highest priority
    2. Config file
    3. Defaults from the Pydantic schema - lowest priority

    Environment variable format: DURASCOPE_STORAGE__ACCOUNT_NAME for nested keys.

    Raises:
        ValidationError: If configuration fails Pydantic validation
        FileNotFoundError: If config file doesn't exist
    """
    from dynaconf import Dynaconf

    # Dynaconf silently accepts missing files
    if not config_path.exists():
        raise FileNotFoundError(f"Config file not found: {config_path}")

    dynaconf_settings = Dynaconf(
        envvar_prefix="DURASCOPE",
        settings_files=[str(config_path)],
        environments=False,
        load_dotenv=False,
        merge_enabled=True,
    )

    # Dynaconf returns uppercase keys; filter out its internal settings
    internal_keys = {"LOAD_DOTENV", "ENVIRONMENTS", "SETTINGS_FILES"}
    raw_config = {k: v for k, v in dynaconf_settings.as_dict().items() if k not in internal_keys}
    raw_config = _lower_keys(raw_config)
    raw_config = _expand_env_vars(raw_config)

    return DurascopeSettings(**raw_config)


def settings_from_env(
    *,
    account_name: str | None = None,
    connection_string: str | None = None,
) -> DurascopeSettings:
    """Build settings without a config file.

    Explicit arguments win; otherwise DTFX_STORAGE_ACCOUNT and
    AZURE_STORAGE_CONNECTION_STRING are read from the environment.
    A connection string is only taken from the environment when no
    account name was resolved.

    Raises:
        ValidationError: If neither an account nor a connection string is found
    """
    if account_name is None and connection_string is None:
        account_name = os.environ.get("DTFX_STORAGE_ACCOUNT")
        if account_name is None:
            connection_string = os.environ.get("AZURE_STORAGE_CONNECTION_STRING")

    log_file = os.environ.get("DTFX_LOG_FILE")
    return DurascopeSettings(
        storage=StorageSettings(
            account_name=account_name,
            connection_string=connection_string,
            sas_token=os.environ.get("AZURE_STORAGE_SAS_TOKEN") if account_name else None,
        ),
        logging=LoggingSettings(log_file=log_file),
    )
