"""Config models and loader.

This module defines Pydantic models for the YAML configuration file and for
environment-based settings. The configuration file describes which Azure
resources to collect (explicit targets, resource groups filtered by type and
name, and tag selections) and which metrics and aggregations to request for
each. JSON documents are accepted as well since YAML is a superset of JSON.

Credentials left empty in the file are filled from the standard Azure
environment variables (``AZURE_SUBSCRIPTION_ID``, ``AZURE_CLIENT_ID``,
``AZURE_CLIENT_SECRET``, ``AZURE_TENANT_ID``).
"""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..domain.query import SUPPORTED_AGGREGATIONS
from ..domain.resources import name_selected
from ..errors import ConfigError

logger = logging.getLogger(__name__)


class Credentials(BaseModel):
    """Service principal used to authenticate against Azure AD.

    Attributes
    ----------
    subscription_id: str
        Subscription whose resources are monitored.
    client_id: str
        Application (client) id of the service principal.
    client_secret: str
        Client secret of the service principal.
    tenant_id: str
        Azure AD tenant (directory) id.
    """

    subscription_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    tenant_id: str = ""

    def missing(self) -> List[str]:
        """Return names of fields that are still empty."""
        return [name for name, value in self.model_dump().items() if not value]


class MetricSpec(BaseModel):
    """A metric requested by name (e.g. ``"Percentage CPU"``)."""

    name: str = Field(..., min_length=1)


class MetricSelection(BaseModel):
    """Metrics and aggregations shared by targets, groups and tag selections."""

    metrics: List[MetricSpec] = Field(..., min_length=1)
    aggregations: List[str] = Field(
        default_factory=lambda: list(SUPPORTED_AGGREGATIONS)
    )

    @field_validator("aggregations")
    @classmethod
    def _warn_unknown_aggregations(cls, value: List[str]) -> List[str]:
        # Unknown kinds are kept here and dropped by the query builder
        unknown = [a for a in value if a not in SUPPORTED_AGGREGATIONS]
        if unknown:
            logger.warning(
                "config.aggregations.unknown",
                extra={"unknown": unknown, "supported": list(SUPPORTED_AGGREGATIONS)},
            )
        return value

    def metric_names(self) -> str:
        """Return the requested metric names joined by commas."""
        return ",".join(m.name for m in self.metrics)


class Target(MetricSelection):
    """An explicitly configured resource.

    ``resource`` is the subscription-relative identifier, e.g.
    ``/resourceGroups/web/providers/Microsoft.Web/sites/blog``.
    """

    resource: str = Field(..., min_length=1)

    @field_validator("resource")
    @classmethod
    def _leading_slash(cls, value: str) -> str:
        return value if value.startswith("/") else "/" + value


class ResourceGroup(MetricSelection):
    """All resources of the given types inside a resource group.

    Name patterns use search semantics: a pattern matches when it is found
    anywhere in the resource name.
    """

    resource_group: str = Field(..., min_length=1)
    resource_types: List[str] = Field(..., min_length=1)
    resource_name_include_re: List[re.Pattern] = Field(default_factory=list)
    resource_name_exclude_re: List[re.Pattern] = Field(default_factory=list)

    def name_selected(self, name: str) -> bool:
        """Apply include patterns (if any) and then exclude patterns."""
        return name_selected(
            name, self.resource_name_include_re, self.resource_name_exclude_re
        )


class ResourceTag(MetricSelection):
    """All subscription resources carrying ``tag_name=tag_value``."""

    resource_tag_name: str = Field(..., min_length=1)
    resource_tag_value: str
    resource_types: List[str] = Field(default_factory=list)


class AppConfig(BaseModel):
    """Top-level exporter configuration.

    Attributes
    ----------
    active_directory_authority_url: str
        Azure AD authority used for the client-credentials grant.
    resource_manager_url: str
        Azure Resource Manager base URL; also the token audience.
    credentials: Credentials
        Service principal and subscription.
    targets: List[Target]
        Explicitly configured resources.
    resource_groups: List[ResourceGroup]
        Resource-group expansions.
    resource_tags: List[ResourceTag]
        Tag expansions.
    batch_size: int
        Maximum number of metric queries per batch call.
    timeout_seconds: float
        HTTP timeout applied to every upstream call.
    scrape_timeout_seconds: float
        Deadline for one full collection cycle.
    query_window_seconds: int
        Lookback window of each metric query.
    """

    active_directory_authority_url: str = "https://login.microsoftonline.com/"
    resource_manager_url: str = "https://management.azure.com/"
    credentials: Credentials = Field(default_factory=Credentials)
    targets: List[Target] = Field(default_factory=list)
    resource_groups: List[ResourceGroup] = Field(default_factory=list)
    resource_tags: List[ResourceTag] = Field(default_factory=list)
    batch_size: int = Field(20, ge=1)
    timeout_seconds: float = Field(30.0, gt=0)
    scrape_timeout_seconds: float = Field(60.0, gt=0)
    query_window_seconds: int = Field(60, ge=1)

    @field_validator("active_directory_authority_url", "resource_manager_url")
    @classmethod
    def _trailing_slash(cls, value: str) -> str:
        return value if value.endswith("/") else value + "/"

    def with_environment(self, env: "AzureCredentialSettings") -> "AppConfig":
        """Return a copy whose empty credentials are filled from ``env``."""
        merged = self.credentials.model_copy(
            update={
                name: getattr(env, name)
                for name in self.credentials.missing()
                if getattr(env, name)
            }
        )
        return self.model_copy(update={"credentials": merged})

    @staticmethod
    def load(
        path: Path, env: Optional["AzureCredentialSettings"] = None
    ) -> "AppConfig":
        """Load, validate and complete the configuration file.

        Raises
        ------
        ConfigError
            If the file cannot be read or parsed, fails validation, or
            credentials are still incomplete after applying the environment.
        """
        try:
            raw = path.read_text(encoding="utf-8")
        except OSError as exc:
            raise ConfigError(f"cannot read config file {path}: {exc}") from exc
        try:
            data = yaml.safe_load(raw) or {}
        except yaml.YAMLError as exc:
            raise ConfigError(f"cannot parse config file {path}: {exc}") from exc
        if not isinstance(data, dict):
            raise ConfigError(f"config file {path} is not a mapping at root level")
        try:
            cfg = AppConfig.model_validate(data)
        except ValidationError as exc:
            raise ConfigError(f"invalid config file {path}: {exc}") from exc

        cfg = cfg.with_environment(env or AzureCredentialSettings())
        missing = cfg.credentials.missing()
        if missing:
            raise ConfigError(
                "missing credentials: "
                + ", ".join(missing)
                + " (set them in the config file or AZURE_* environment variables)"
            )
        logger.info(
            "config.loaded",
            extra={
                "path": str(path),
                "targets": len(cfg.targets),
                "resource_groups": len(cfg.resource_groups),
                "resource_tags": len(cfg.resource_tags),
            },
        )
        return cfg


class AzureCredentialSettings(BaseSettings):
    """Standard Azure SDK environment variables used as credential fallback."""

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="AZURE_", extra="ignore"
    )

    subscription_id: str = ""
    client_id: str = ""
    client_secret: str = ""
    tenant_id: str = ""


class EnvSettings(BaseSettings):
    """Environment-driven exporter settings and .env support.

    Attributes
    ----------
    log_level: str
        Logging level name (e.g., "DEBUG", "INFO"). Defaults to "INFO".
    """

    model_config = SettingsConfigDict(
        env_file=".env", env_prefix="AZURE_EXPORTER_", extra="ignore"
    )

    log_level: str = Field("INFO")
