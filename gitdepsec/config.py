"""Configuration models for the GitDepSec backend client."""

import os

from pydantic import BaseModel, Field

from .constants import (
    ANALYSIS_REQUEST_TIMEOUT,
    DEFAULT_API_URL,
    DEFAULT_REQUEST_TIMEOUT,
)


class BackendConfig(BaseModel):
    """Connection settings for the analysis backend."""

    base_url: str = Field(
        default=DEFAULT_API_URL, description="Base URL of the analysis backend"
    )
    timeout: float = Field(
        default=DEFAULT_REQUEST_TIMEOUT, description="Timeout for short requests (seconds)"
    )
    analysis_timeout: float = Field(
        default=ANALYSIS_REQUEST_TIMEOUT,
        description="Timeout for dependency analysis requests (seconds)",
    )
    github_pat: str | None = Field(
        default=None,
        description="GitHub personal access token forwarded for private repositories",
    )

    @classmethod
    def from_env(cls) -> "BackendConfig":
        """Build a configuration from environment variables."""
        return cls(
            base_url=os.environ.get("GITDEPSEC_API_URL", DEFAULT_API_URL),
            timeout=float(os.environ.get("GITDEPSEC_REQUEST_TIMEOUT", DEFAULT_REQUEST_TIMEOUT)),
            analysis_timeout=float(
                os.environ.get("GITDEPSEC_ANALYSIS_TIMEOUT", ANALYSIS_REQUEST_TIMEOUT)
            ),
            github_pat=os.environ.get("GITHUB_PAT") or None,
        )
