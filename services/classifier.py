"""Turns the untrusted lookup body into a ResolutionOutcome.

All field checks happen here, once.  Everything downstream works on the
outcome variants and never on the raw body.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from services.config_schema import ResolverConfig


class RemoteMetadata(BaseModel):
    model_config = ConfigDict(extra="ignore")

    name:        str
    size:        int       = Field(ge=0)
    count:       int       = 0
    file_type:   str | None = None
    screenshots: list[Any] = Field(default_factory=list)

    @field_validator("name", mode="before")
    @classmethod
    def _name_as_text(cls, v: object) -> object:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("count", mode="before")
    @classmethod
    def _count_default(cls, v: object) -> object:
        return 0 if v is None or v == "" else v

    @field_validator("file_type", mode="before")
    @classmethod
    def _file_type_text(cls, v: object) -> object:
        return v if isinstance(v, str) and v else None

    @field_validator("screenshots", mode="before")
    @classmethod
    def _screenshots_list(cls, v: object) -> object:
        return v if isinstance(v, list) else []


@dataclass(frozen=True)
class Success:
    data: RemoteMetadata


@dataclass(frozen=True)
class QuotaError:
    message: str


@dataclass(frozen=True)
class OtherError:
    message: str


@dataclass(frozen=True)
class Malformed:
    reason: str = ""


ResolutionOutcome = Success | QuotaError | OtherError | Malformed


@dataclass(frozen=True)
class MatchRules:
    """Substring rules used to spot throttling in the service's wording."""

    quota_keywords: tuple[str, ...] = ("quota", "limit", "frequent", "rate")
    name_throttle_keywords: tuple[str, ...] = ("frequent",)

    @classmethod
    def from_config(cls, cfg: ResolverConfig) -> MatchRules:
        return cls(
            quota_keywords=tuple(cfg.quota_keywords),
            name_throttle_keywords=tuple(cfg.name_throttle_keywords),
        )

    def is_quota(self, text: str) -> bool:
        lowered = text.lower()
        return any(k in lowered for k in self.quota_keywords)

    def is_throttled_name(self, name: str) -> bool:
        lowered = name.lower()
        return any(k in lowered for k in self.name_throttle_keywords)


def _error_text(body: dict) -> str:
    for key in ("error", "message"):
        value = body.get(key)
        if value is None or value is False or value == "":
            continue
        text = value if isinstance(value, str) else str(value)
        if text.strip():
            return text.strip()
    return ""


def classify(body: Any, rules: MatchRules = MatchRules()) -> ResolutionOutcome:
    """Classify a lookup body; the first matching rule wins."""
    if not body or not isinstance(body, dict):
        return Malformed("empty response")

    error = _error_text(body)
    if error:
        return QuotaError(error) if rules.is_quota(error) else OtherError(error)

    if body.get("name") is None or body.get("size") is None:
        return Malformed("missing name or size")

    try:
        data = RemoteMetadata.model_validate(body)
    except ValidationError as e:
        return Malformed(f"invalid fields: {e.error_count()} error(s)")

    if rules.is_throttled_name(data.name):
        return OtherError(data.name)

    return Success(data)
