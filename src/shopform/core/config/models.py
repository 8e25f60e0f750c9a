"""
Pydantic models for shopform settings.

Settings come from several layers (defaults, user and project JSON files,
environment variables, CLI flags) merged by ``shopform.core.config.loader``
and validated here once.
"""

from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field


class ApiConfig(BaseModel):
    """Where the admin API lives and how to talk to it."""

    url: str | None = Field(default=None, description="Base URL of the admin API")
    token: str | None = Field(default=None, description="Bearer token for the admin API")
    timeout: float = Field(default=30.0, gt=0, description="Per-request timeout in seconds")


class DeployConfig(BaseModel):
    concurrency: int = Field(
        default=5, ge=1, le=50, description="Operations in flight per batch"
    )
    delay: float = Field(default=0.0, ge=0, description="Seconds between items of one worker")
    command_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Deadline for a whole diff or deploy command, in seconds",
    )


class ReportsConfig(BaseModel):
    enabled: bool = True
    directory: Path = Field(default=Path(".shopform") / "reports")
    max_reports: int = Field(default=5, ge=1)


class ShopformSettings(BaseModel):
    """
    Complete settings for one shopform invocation.

    Example:
        >>> settings = ShopformSettings(api=ApiConfig(url="https://shop.example/api"))
        >>> settings.deploy.concurrency
        5
    """

    model_config = ConfigDict(extra="ignore")

    api: ApiConfig = Field(default_factory=ApiConfig)
    deploy: DeployConfig = Field(default_factory=DeployConfig)
    reports: ReportsConfig = Field(default_factory=ReportsConfig)
    document_path: Path = Field(default=Path("config.yml"))


__all__ = ["ApiConfig", "DeployConfig", "ReportsConfig", "ShopformSettings"]
