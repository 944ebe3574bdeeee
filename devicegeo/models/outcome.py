from enum import Enum

from pydantic import BaseModel, ConfigDict

from devicegeo.models.common import LocationRecord


class OutcomeKind(str, Enum):
    """Result kinds a provider adapter can report for a single lookup."""

    success = "success"
    rate_limited = "rate_limited"
    failed = "failed"


class ProviderOutcome(BaseModel):
    """Structured result of one provider attempt.

    Adapters never raise out of ``lookup``; the resolver branches on ``kind``.
    """

    model_config = ConfigDict(frozen=True)

    kind: OutcomeKind
    provider: str
    record: LocationRecord | None = None
    reason: str | None = None

    @classmethod
    def success(cls, provider: str, record: LocationRecord) -> "ProviderOutcome":
        return cls(kind=OutcomeKind.success, provider=provider, record=record)

    @classmethod
    def rate_limited(cls, provider: str, reason: str | None = None) -> "ProviderOutcome":
        return cls(kind=OutcomeKind.rate_limited, provider=provider, reason=reason)

    @classmethod
    def failed(cls, provider: str, reason: str) -> "ProviderOutcome":
        return cls(kind=OutcomeKind.failed, provider=provider, reason=reason)
