from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator


class VerifyRequest(BaseModel):
    token: str = Field(..., min_length=1, max_length=4096)
    action: str | None = Field(default=None, max_length=256)

    @field_validator("token")
    @classmethod
    def _token_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("token must not be blank")
        return value


class AssessmentResult(BaseModel):
    """Normalized view of a reCAPTCHA Enterprise assessment."""

    model_config = ConfigDict(populate_by_name=True)

    valid: bool
    score: float | None = None
    action: str | None = None
    invalid_reason: str | None = Field(default=None, alias="invalidReason")
    reasons: list[str] | None = None
    create_time: datetime | None = Field(default=None, alias="createTime")


class _TokenProperties(BaseModel):
    valid: bool = False
    action: str | None = None
    invalid_reason: str | None = Field(default=None, alias="invalidReason")
    create_time: datetime | None = Field(default=None, alias="createTime")


class _RiskAnalysis(BaseModel):
    score: float | None = None
    reasons: list[str] = Field(default_factory=list)


class ProviderAssessment(BaseModel):
    """Subset of the provider's assessment payload the gateway relies on."""

    token_properties: _TokenProperties = Field(
        default_factory=_TokenProperties, alias="tokenProperties"
    )
    risk_analysis: _RiskAnalysis = Field(default_factory=_RiskAnalysis, alias="riskAnalysis")

    def normalize(self) -> AssessmentResult:
        props = self.token_properties
        return AssessmentResult(
            valid=props.valid,
            score=self.risk_analysis.score,
            action=props.action or None,
            invalid_reason=props.invalid_reason or None,
            reasons=self.risk_analysis.reasons or None,
            create_time=props.create_time,
        )
