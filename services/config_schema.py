from __future__ import annotations

from typing import Annotated

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------------
# Reusable bool coercion: "true" / "1" / "yes" → True
# ---------------------------------------------------------------------------

def _coerce_bool(v: object) -> object:
    if isinstance(v, str):
        return v.lower() in ("true", "1", "yes")
    return v


CoercedBool = Annotated[bool, BeforeValidator(_coerce_bool)]


DEFAULT_API_ENDPOINT = "https://whatslink.info/api/v1/link"
DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/124.0.0.0 Safari/537.36"
)


# ---------------------------------------------------------------------------
# Base for all driver config blocks; unknown keys are a validation error
# ---------------------------------------------------------------------------

class _DriverConfig(BaseModel):
    model_config = ConfigDict(extra="forbid")


# ---------------------------------------------------------------------------
# Resolver config: the ``resolver`` section of the config file.
# Keys may be given in snake_case or camelCase.
# ---------------------------------------------------------------------------

class ResolverConfig(BaseModel):
    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    api_endpoint:           str         = Field(DEFAULT_API_ENDPOINT, alias="apiEndpoint")
    timeout:                int         = Field(10000, gt=0, description="Request timeout in milliseconds")
    custom_user_agent:      str         = Field(DEFAULT_USER_AGENT, alias="customUserAgent")
    use_forward:            CoercedBool = Field(False, alias="useForward")
    show_screenshot:        CoercedBool = Field(True, alias="showScreenshot")
    debug_mode:             CoercedBool = Field(False, alias="debugMode")
    send_separately:        CoercedBool = Field(False, alias="sendSeparately")
    use_local_parsing:      CoercedBool = Field(True, alias="useLocalParsing")
    min_interval:           int         = Field(3000, ge=0, alias="minInterval",
                                                description="Minimum milliseconds between two lookups")
    quota_keywords:         list[str]   = Field(default_factory=lambda: ["quota", "limit", "frequent", "rate"],
                                                alias="quotaKeywords")
    name_throttle_keywords: list[str]   = Field(default_factory=lambda: ["frequent"],
                                                alias="nameThrottleKeywords")
    forward_platforms:      list[str]   = Field(default_factory=lambda: ["qq", "onebot", "napcat"],
                                                alias="forwardPlatforms")
    screenshot_max_size:    int         = Field(10 * 1024 * 1024, gt=0, alias="screenshotMaxSize")

    @field_validator("quota_keywords", "name_throttle_keywords", "forward_platforms")
    @classmethod
    def _lowercase(cls, v: list[str]) -> list[str]:
        return [item.strip().lower() for item in v if item.strip()]
