"""Candidate entities produced by extraction and the items they materialize into.

A CandidateEntity is the raw, per-stage output of a model call: its ``type``
is still a free-form tag. A MaterializedItem is the durable record created in
the final stage, with ``type`` resolved against the controlled vocabulary and
``structured_data`` validated against the per-type model registry below.
"""

import uuid
from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from onboarding.models.enums import (
    EntityCategory,
    ItemStatus,
    ItemType,
    ProfileKind,
)

DEFAULT_ENTITY_CONFIDENCE = 0.8


# =============================================================================
# Candidate Entities
# =============================================================================

class CandidateEntity(BaseModel):
    """A typed fact proposed by an extraction stage."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    category: Optional[EntityCategory] = Field(
        None, description="Broad category from general extraction"
    )
    type: str = Field(..., min_length=1, description="Item type tag as returned by the model")
    content: str = Field(..., min_length=1, description="The fact itself")
    confidence: float = Field(
        DEFAULT_ENTITY_CONFIDENCE, ge=0.0, le=1.0, description="Model confidence"
    )
    source_quote: Optional[str] = Field(None, description="Verbatim supporting quote")
    source_speaker: Optional[str] = Field(None, description="Who said it")
    source_timestamp: Optional[str] = Field(None, description="Timestamp in the recording")
    structured_data: Optional[dict[str, Any]] = Field(
        None, description="Type-specific fields, validated at materialization"
    )

    @field_validator("type", "content", mode="before")
    @classmethod
    def _strip(cls, value: Any) -> Any:
        if isinstance(value, str):
            return value.strip()
        return value

    @field_validator("confidence", mode="before")
    @classmethod
    def _clamp_confidence(cls, value: Any) -> float:
        if value is None:
            return DEFAULT_ENTITY_CONFIDENCE
        try:
            number = float(value)
        except (TypeError, ValueError):
            return DEFAULT_ENTITY_CONFIDENCE
        return min(1.0, max(0.0, number))

    @field_validator("category", mode="before")
    @classmethod
    def _normalize_category(cls, value: Any) -> Any:
        if isinstance(value, str):
            normalized = value.strip().upper()
            if normalized in EntityCategory.__members__:
                return normalized
            return None
        return value


def parse_candidates(
    raw_items: Any,
    source: str,
) -> tuple[list[CandidateEntity], list[str]]:
    """Validate a list of raw entity dicts returned by the model.

    Entries missing a type or content are dropped and reported, never coerced.

    Args:
        raw_items: Value of the model's entity array.
        source: Label used in warning messages.

    Returns:
        Tuple of (valid entities, warnings).
    """
    entities: list[CandidateEntity] = []
    warnings: list[str] = []

    if not isinstance(raw_items, list):
        if raw_items is not None:
            warnings.append(f"{source}: expected a list of entities, got {type(raw_items).__name__}")
        return entities, warnings

    for index, raw in enumerate(raw_items):
        if not isinstance(raw, dict):
            warnings.append(f"{source}: entity #{index} is not an object")
            continue
        payload = dict(raw)
        if not payload.get("id"):
            payload.pop("id", None)
        try:
            entities.append(CandidateEntity.model_validate(payload))
        except ValidationError as e:
            fields = sorted({str(err["loc"][0]) for err in e.errors() if err.get("loc")})
            warnings.append(
                f"{source}: dropped entity #{index} with invalid {', '.join(fields) or 'fields'}"
            )

    return entities, warnings


# =============================================================================
# Structured data (one model per item type)
# =============================================================================

class StructuredData(BaseModel):
    """Base for per-type structured payloads."""

    model_config = ConfigDict(extra="ignore")


class GenericData(StructuredData):
    """Free-form details for types without a dedicated shape."""

    details: Optional[str] = None
    notes: Optional[str] = None


class StakeholderData(StructuredData):
    name: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None
    is_decision_maker: Optional[bool] = None


class GoalData(StructuredData):
    description: Optional[str] = None
    measurable: Optional[bool] = None


class KpiTargetData(StructuredData):
    name: Optional[str] = None
    target_value: Optional[str] = None
    current_value: Optional[str] = None
    unit: Optional[str] = None
    frequency: Optional[str] = None


class VolumeData(StructuredData):
    volume: Optional[float] = None
    unit: Optional[str] = None
    period: Optional[str] = None


class CostData(StructuredData):
    amount: Optional[float] = None
    currency: Optional[str] = None
    target_amount: Optional[float] = None


class PeriodData(StructuredData):
    period: Optional[str] = None
    deadline: Optional[str] = None
    multiplier: Optional[float] = None


class ProcessStepData(StructuredData):
    step_number: Optional[int] = None
    actor: Optional[str] = None
    system: Optional[str] = None
    trigger: Optional[str] = None
    action: Optional[str] = None


class RuleData(StructuredData):
    condition: Optional[str] = None
    action: Optional[str] = None
    threshold: Optional[str] = None


class ScopeData(StructuredData):
    reason: Optional[str] = None
    ambiguous: Optional[bool] = None


class ChannelData(StructuredData):
    name: Optional[str] = None
    volume_percentage: Optional[float] = None
    sla: Optional[str] = None
    language: Optional[str] = None


class SkillData(StructuredData):
    skill_name: Optional[str] = None
    description: Optional[str] = None
    knowledge_source: Optional[str] = None


class CommunicationData(StructuredData):
    tone: Optional[str] = None
    formality: Optional[str] = None
    languages: Optional[list[str]] = None


class GuardrailData(StructuredData):
    rule: Optional[str] = None
    limit_amount: Optional[float] = None
    currency: Optional[str] = None
    regulation: Optional[str] = None


class IntegrationData(StructuredData):
    system_name: Optional[str] = None
    access_type: Optional[str] = None
    purpose: Optional[str] = None
    api_available: Optional[bool] = None


class DataFieldData(StructuredData):
    field_name: Optional[str] = None
    source_system: Optional[str] = None
    data_type: Optional[str] = None
    required: Optional[bool] = None


class EndpointData(StructuredData):
    method: Optional[str] = None
    path: Optional[str] = None
    auth: Optional[str] = None


class ContactData(StructuredData):
    name: Optional[str] = None
    role: Optional[str] = None
    email: Optional[str] = None


class DecisionData(StructuredData):
    owner: Optional[str] = None
    due_date: Optional[str] = None
    severity: Optional[str] = None
    mitigation: Optional[str] = None


# Every ItemType has exactly one entry.
STRUCTURED_DATA_MODELS: dict[ItemType, type[StructuredData]] = {
    ItemType.STAKEHOLDER: StakeholderData,
    ItemType.GOAL: GoalData,
    ItemType.KPI_TARGET: KpiTargetData,
    ItemType.VOLUME_EXPECTATION: VolumeData,
    ItemType.TIMELINE_CONSTRAINT: PeriodData,
    ItemType.BUSINESS_CASE: GenericData,
    ItemType.COST_PER_CASE: CostData,
    ItemType.PEAK_PERIODS: PeriodData,
    ItemType.HAPPY_PATH_STEP: ProcessStepData,
    ItemType.EXCEPTION_CASE: ProcessStepData,
    ItemType.BUSINESS_RULE: RuleData,
    ItemType.CASE_TYPE: VolumeData,
    ItemType.DOCUMENT_TYPE: GenericData,
    ItemType.ESCALATION_TRIGGER: RuleData,
    ItemType.SCOPE_IN: ScopeData,
    ItemType.SCOPE_OUT: ScopeData,
    ItemType.CHANNEL: ChannelData,
    ItemType.CHANNEL_VOLUME: ChannelData,
    ItemType.CHANNEL_SLA: ChannelData,
    ItemType.CHANNEL_RULE: RuleData,
    ItemType.SKILL_ANSWER: SkillData,
    ItemType.SKILL_ROUTE: SkillData,
    ItemType.SKILL_APPROVE_REJECT: SkillData,
    ItemType.SKILL_REQUEST_INFO: SkillData,
    ItemType.SKILL_NOTIFY: SkillData,
    ItemType.SKILL_OTHER: SkillData,
    ItemType.KNOWLEDGE_SOURCE: SkillData,
    ItemType.BRAND_TONE: CommunicationData,
    ItemType.COMMUNICATION_STYLE: CommunicationData,
    ItemType.RESPONSE_TEMPLATE: GenericData,
    ItemType.GUARDRAIL_NEVER: GuardrailData,
    ItemType.GUARDRAIL_ALWAYS: GuardrailData,
    ItemType.FINANCIAL_LIMIT: GuardrailData,
    ItemType.LEGAL_RESTRICTION: GuardrailData,
    ItemType.COMPLIANCE_REQUIREMENT: GuardrailData,
    ItemType.SYSTEM_INTEGRATION: IntegrationData,
    ItemType.DATA_FIELD: DataFieldData,
    ItemType.API_ENDPOINT: EndpointData,
    ItemType.AUTH_REQUIREMENT: EndpointData,
    ItemType.DATA_HANDLING: DataFieldData,
    ItemType.SECURITY_REQUIREMENT: GuardrailData,
    ItemType.ERROR_HANDLING: RuleData,
    ItemType.TECHNICAL_CONTACT: ContactData,
    ItemType.OPEN_ITEM: DecisionData,
    ItemType.DECISION: DecisionData,
    ItemType.APPROVAL: DecisionData,
    ItemType.RISK: DecisionData,
}


def parse_structured_data(
    item_type: ItemType,
    raw: Optional[dict[str, Any]],
) -> tuple[Optional[StructuredData], Optional[str]]:
    """Validate raw structured data against the model registered for a type.

    Returns:
        Tuple of (parsed model or None, warning or None).
    """
    if not raw:
        return None, None
    model = STRUCTURED_DATA_MODELS[item_type]
    try:
        return model.model_validate(raw), None
    except ValidationError:
        return None, f"Discarded invalid structured data for {item_type.value}"


# =============================================================================
# Materialized Items
# =============================================================================

class MaterializedItem(BaseModel):
    """Durable, reviewable fact created by tab population."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    job_id: str
    session_id: Optional[str] = None
    type: ItemType
    category: Optional[EntityCategory] = None
    content: str
    confidence: float = Field(..., ge=0.0, le=1.0)
    status: ItemStatus = ItemStatus.PENDING
    profile: ProfileKind
    profile_section: str
    source_quote: Optional[str] = None
    source_speaker: Optional[str] = None
    source_timestamp: Optional[str] = None
    structured_data: Optional[dict[str, Any]] = None
    reviewed_at: Optional[datetime] = None
    created_at: datetime = Field(default_factory=datetime.utcnow)
