"""Enumeration types for jobs, stages and extracted items."""

from enum import Enum


class JobStatus(str, Enum):
    """Lifecycle status of an upload job."""

    QUEUED = "QUEUED"
    PROCESSING = "PROCESSING"
    COMPLETE = "COMPLETE"
    FAILED = "FAILED"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETE, JobStatus.FAILED)


class PipelineStage(str, Enum):
    """Pipeline stages in execution order."""

    CLASSIFICATION = "CLASSIFICATION"
    GENERAL_EXTRACTION = "GENERAL_EXTRACTION"
    SPECIALIZED_EXTRACTION = "SPECIALIZED_EXTRACTION"
    TAB_POPULATION = "TAB_POPULATION"

    @property
    def order(self) -> int:
        return STAGE_ORDER.index(self)


STAGE_ORDER: list[PipelineStage] = [
    PipelineStage.CLASSIFICATION,
    PipelineStage.GENERAL_EXTRACTION,
    PipelineStage.SPECIALIZED_EXTRACTION,
    PipelineStage.TAB_POPULATION,
]


class StageStatus(str, Enum):
    """Status of the stage currently reported in a progress snapshot."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETE = "complete"
    ERROR = "error"


class ContentType(str, Enum):
    """Kind of onboarding session or document an upload contains."""

    KICKOFF_SESSION = "KICKOFF_SESSION"
    PROCESS_DESIGN_SESSION = "PROCESS_DESIGN_SESSION"
    SKILLS_GUARDRAILS_SESSION = "SKILLS_GUARDRAILS_SESSION"
    TECHNICAL_SESSION = "TECHNICAL_SESSION"
    SIGNOFF_SESSION = "SIGNOFF_SESSION"
    REQUIREMENTS_DOCUMENT = "REQUIREMENTS_DOCUMENT"
    TECHNICAL_SPEC = "TECHNICAL_SPEC"
    PROCESS_DOCUMENT = "PROCESS_DOCUMENT"
    UNKNOWN = "UNKNOWN"


class EntityCategory(str, Enum):
    """Broad category assigned during general extraction."""

    BUSINESS = "BUSINESS"
    PROCESS = "PROCESS"
    SCOPE = "SCOPE"
    CHANNELS = "CHANNELS"
    SKILLS = "SKILLS"
    COMMUNICATION = "COMMUNICATION"
    GUARDRAILS = "GUARDRAILS"
    INTEGRATIONS = "INTEGRATIONS"
    SECURITY = "SECURITY"
    DECISIONS = "DECISIONS"


class ItemType(str, Enum):
    """Controlled vocabulary for materialized items."""

    # Business context
    STAKEHOLDER = "STAKEHOLDER"
    GOAL = "GOAL"
    KPI_TARGET = "KPI_TARGET"
    VOLUME_EXPECTATION = "VOLUME_EXPECTATION"
    TIMELINE_CONSTRAINT = "TIMELINE_CONSTRAINT"
    BUSINESS_CASE = "BUSINESS_CASE"
    COST_PER_CASE = "COST_PER_CASE"
    PEAK_PERIODS = "PEAK_PERIODS"

    # Process
    HAPPY_PATH_STEP = "HAPPY_PATH_STEP"
    EXCEPTION_CASE = "EXCEPTION_CASE"
    BUSINESS_RULE = "BUSINESS_RULE"
    CASE_TYPE = "CASE_TYPE"
    DOCUMENT_TYPE = "DOCUMENT_TYPE"
    ESCALATION_TRIGGER = "ESCALATION_TRIGGER"

    # Scope
    SCOPE_IN = "SCOPE_IN"
    SCOPE_OUT = "SCOPE_OUT"

    # Channels
    CHANNEL = "CHANNEL"
    CHANNEL_VOLUME = "CHANNEL_VOLUME"
    CHANNEL_SLA = "CHANNEL_SLA"
    CHANNEL_RULE = "CHANNEL_RULE"

    # Skills
    SKILL_ANSWER = "SKILL_ANSWER"
    SKILL_ROUTE = "SKILL_ROUTE"
    SKILL_APPROVE_REJECT = "SKILL_APPROVE_REJECT"
    SKILL_REQUEST_INFO = "SKILL_REQUEST_INFO"
    SKILL_NOTIFY = "SKILL_NOTIFY"
    SKILL_OTHER = "SKILL_OTHER"
    KNOWLEDGE_SOURCE = "KNOWLEDGE_SOURCE"

    # Communication
    BRAND_TONE = "BRAND_TONE"
    COMMUNICATION_STYLE = "COMMUNICATION_STYLE"
    RESPONSE_TEMPLATE = "RESPONSE_TEMPLATE"

    # Guardrails
    GUARDRAIL_NEVER = "GUARDRAIL_NEVER"
    GUARDRAIL_ALWAYS = "GUARDRAIL_ALWAYS"
    FINANCIAL_LIMIT = "FINANCIAL_LIMIT"
    LEGAL_RESTRICTION = "LEGAL_RESTRICTION"
    COMPLIANCE_REQUIREMENT = "COMPLIANCE_REQUIREMENT"

    # Technical
    SYSTEM_INTEGRATION = "SYSTEM_INTEGRATION"
    DATA_FIELD = "DATA_FIELD"
    API_ENDPOINT = "API_ENDPOINT"
    AUTH_REQUIREMENT = "AUTH_REQUIREMENT"
    DATA_HANDLING = "DATA_HANDLING"
    SECURITY_REQUIREMENT = "SECURITY_REQUIREMENT"
    ERROR_HANDLING = "ERROR_HANDLING"
    TECHNICAL_CONTACT = "TECHNICAL_CONTACT"

    # Decisions
    OPEN_ITEM = "OPEN_ITEM"
    DECISION = "DECISION"
    APPROVAL = "APPROVAL"
    RISK = "RISK"


class ItemStatus(str, Enum):
    """Review status of a materialized item."""

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class ProfileKind(str, Enum):
    """Which profile a materialized item is shown on."""

    BUSINESS = "business"
    TECHNICAL = "technical"


class Verdict(str, Enum):
    """Outcome of a quality judge."""

    PASS = "pass"
    REVIEW = "review"
    FAIL = "fail"

    @property
    def severity(self) -> int:
        return {Verdict.PASS: 0, Verdict.REVIEW: 1, Verdict.FAIL: 2}[self]
