"""Controlled vocabulary tables used across stages and judges.

All tables here are closed: a type that is not listed is unknown, and
callers decide whether that is a warning or an error.
"""

from typing import Optional

from onboarding.models.enums import ContentType, ItemType, ProfileKind

# =============================================================================
# Type resolution
# =============================================================================

# Tags models commonly emit instead of the canonical name.
TYPE_ALIASES: dict[str, ItemType] = {
    "OBJECTIVE": ItemType.GOAL,
    "PROBLEM": ItemType.BUSINESS_CASE,
    "BUSINESS_CONTEXT": ItemType.BUSINESS_CASE,
    "KPI": ItemType.KPI_TARGET,
    "METRIC": ItemType.KPI_TARGET,
    "SUCCESS_METRIC": ItemType.KPI_TARGET,
    "VOLUME": ItemType.VOLUME_EXPECTATION,
    "COST": ItemType.COST_PER_CASE,
    "TIMELINE": ItemType.TIMELINE_CONSTRAINT,
    "DEADLINE": ItemType.TIMELINE_CONSTRAINT,
    "PEAK_PERIOD": ItemType.PEAK_PERIODS,
    "PROCESS_STEP": ItemType.HAPPY_PATH_STEP,
    "EXCEPTION": ItemType.EXCEPTION_CASE,
    "DECISION_POINT": ItemType.BUSINESS_RULE,
    "RULE": ItemType.BUSINESS_RULE,
    "ESCALATION_RULE": ItemType.ESCALATION_TRIGGER,
    "ESCALATION": ItemType.ESCALATION_TRIGGER,
    "IN_SCOPE": ItemType.SCOPE_IN,
    "OUT_OF_SCOPE": ItemType.SCOPE_OUT,
    "SLA": ItemType.CHANNEL_SLA,
    "SKILL": ItemType.SKILL_OTHER,
    "TEMPLATE": ItemType.RESPONSE_TEMPLATE,
    "FORMALITY": ItemType.COMMUNICATION_STYLE,
    "COMMUNICATION_GUIDELINE": ItemType.COMMUNICATION_STYLE,
    "TONE": ItemType.BRAND_TONE,
    "NEVER": ItemType.GUARDRAIL_NEVER,
    "ALWAYS": ItemType.GUARDRAIL_ALWAYS,
    "COMPLIANCE": ItemType.COMPLIANCE_REQUIREMENT,
    "INTEGRATION": ItemType.SYSTEM_INTEGRATION,
    "SYSTEM": ItemType.SYSTEM_INTEGRATION,
    "API": ItemType.API_ENDPOINT,
    "AUTHENTICATION": ItemType.AUTH_REQUIREMENT,
    "SECURITY": ItemType.SECURITY_REQUIREMENT,
    "CONTACT": ItemType.TECHNICAL_CONTACT,
    "CONCERN": ItemType.RISK,
    "ISSUE": ItemType.RISK,
    "TODO": ItemType.OPEN_ITEM,
    "ACTION_ITEM": ItemType.OPEN_ITEM,
    "SIGN_OFF": ItemType.APPROVAL,
}


def _normalize_tag(tag: str) -> str:
    return tag.strip().upper().replace("-", "_").replace(" ", "_")


def resolve_item_type(tag: str) -> Optional[ItemType]:
    """Resolve a model-emitted tag to the controlled vocabulary.

    Returns:
        The matching ItemType, or None when the tag is unknown.
    """
    normalized = _normalize_tag(tag)
    if normalized in ItemType.__members__:
        return ItemType[normalized]
    return TYPE_ALIASES.get(normalized)


# =============================================================================
# Profile sections
# =============================================================================

PROFILE_SECTIONS: dict[ItemType, tuple[ProfileKind, str]] = {
    # Business profile
    ItemType.STAKEHOLDER: (ProfileKind.BUSINESS, "businessContext"),
    ItemType.GOAL: (ProfileKind.BUSINESS, "identity"),
    ItemType.BUSINESS_CASE: (ProfileKind.BUSINESS, "identity"),
    ItemType.KPI_TARGET: (ProfileKind.BUSINESS, "kpis"),
    ItemType.VOLUME_EXPECTATION: (ProfileKind.BUSINESS, "businessContext"),
    ItemType.TIMELINE_CONSTRAINT: (ProfileKind.BUSINESS, "businessContext"),
    ItemType.COST_PER_CASE: (ProfileKind.BUSINESS, "businessContext"),
    ItemType.PEAK_PERIODS: (ProfileKind.BUSINESS, "businessContext"),
    ItemType.HAPPY_PATH_STEP: (ProfileKind.BUSINESS, "process"),
    ItemType.EXCEPTION_CASE: (ProfileKind.BUSINESS, "process"),
    ItemType.BUSINESS_RULE: (ProfileKind.BUSINESS, "process"),
    ItemType.CASE_TYPE: (ProfileKind.BUSINESS, "process"),
    ItemType.DOCUMENT_TYPE: (ProfileKind.BUSINESS, "process"),
    ItemType.ESCALATION_TRIGGER: (ProfileKind.BUSINESS, "process"),
    ItemType.SCOPE_IN: (ProfileKind.BUSINESS, "scope"),
    ItemType.SCOPE_OUT: (ProfileKind.BUSINESS, "scope"),
    ItemType.CHANNEL: (ProfileKind.BUSINESS, "channels"),
    ItemType.CHANNEL_VOLUME: (ProfileKind.BUSINESS, "channels"),
    ItemType.CHANNEL_SLA: (ProfileKind.BUSINESS, "channels"),
    ItemType.CHANNEL_RULE: (ProfileKind.BUSINESS, "channels"),
    ItemType.SKILL_ANSWER: (ProfileKind.BUSINESS, "skills"),
    ItemType.SKILL_ROUTE: (ProfileKind.BUSINESS, "skills"),
    ItemType.SKILL_APPROVE_REJECT: (ProfileKind.BUSINESS, "skills"),
    ItemType.SKILL_REQUEST_INFO: (ProfileKind.BUSINESS, "skills"),
    ItemType.SKILL_NOTIFY: (ProfileKind.BUSINESS, "skills"),
    ItemType.SKILL_OTHER: (ProfileKind.BUSINESS, "skills"),
    ItemType.KNOWLEDGE_SOURCE: (ProfileKind.BUSINESS, "skills"),
    ItemType.RESPONSE_TEMPLATE: (ProfileKind.BUSINESS, "skills"),
    ItemType.BRAND_TONE: (ProfileKind.BUSINESS, "guardrails"),
    ItemType.COMMUNICATION_STYLE: (ProfileKind.BUSINESS, "guardrails"),
    ItemType.GUARDRAIL_NEVER: (ProfileKind.BUSINESS, "guardrails"),
    ItemType.GUARDRAIL_ALWAYS: (ProfileKind.BUSINESS, "guardrails"),
    ItemType.FINANCIAL_LIMIT: (ProfileKind.BUSINESS, "guardrails"),
    ItemType.LEGAL_RESTRICTION: (ProfileKind.BUSINESS, "guardrails"),
    ItemType.OPEN_ITEM: (ProfileKind.BUSINESS, "decisions"),
    ItemType.DECISION: (ProfileKind.BUSINESS, "decisions"),
    ItemType.APPROVAL: (ProfileKind.BUSINESS, "decisions"),
    ItemType.RISK: (ProfileKind.BUSINESS, "decisions"),
    # Technical profile
    ItemType.SYSTEM_INTEGRATION: (ProfileKind.TECHNICAL, "integrations"),
    ItemType.API_ENDPOINT: (ProfileKind.TECHNICAL, "integrations"),
    ItemType.AUTH_REQUIREMENT: (ProfileKind.TECHNICAL, "integrations"),
    ItemType.ERROR_HANDLING: (ProfileKind.TECHNICAL, "integrations"),
    ItemType.TECHNICAL_CONTACT: (ProfileKind.TECHNICAL, "integrations"),
    ItemType.DATA_FIELD: (ProfileKind.TECHNICAL, "dataFields"),
    ItemType.DATA_HANDLING: (ProfileKind.TECHNICAL, "dataFields"),
    ItemType.SECURITY_REQUIREMENT: (ProfileKind.TECHNICAL, "security"),
    ItemType.COMPLIANCE_REQUIREMENT: (ProfileKind.TECHNICAL, "security"),
}

INTEGRATION_TYPES = frozenset({ItemType.SYSTEM_INTEGRATION})
BUSINESS_RULE_TYPES = frozenset({
    ItemType.BUSINESS_RULE,
    ItemType.GUARDRAIL_NEVER,
    ItemType.GUARDRAIL_ALWAYS,
})
TEST_CASE_TYPES = frozenset({ItemType.HAPPY_PATH_STEP, ItemType.EXCEPTION_CASE})


# =============================================================================
# Checklists and expected coverage per content type
# =============================================================================

CHECKLISTS: dict[ContentType, list[str]] = {
    ContentType.KICKOFF_SESSION: [
        "What problem are we solving? Why now?",
        "What's the current cost per case/transaction?",
        "What's the target cost after automation?",
        "What's the monthly volume?",
        "What does success look like? (KPIs)",
        "Who are the key stakeholders?",
        "What's the proposed digital employee name/role?",
    ],
    ContentType.PROCESS_DESIGN_SESSION: [
        "What's the happy path from start to finish?",
        "What case types exist? Volume distribution?",
        "Which channels are used? Volume per channel?",
        "What's the exception rate?",
        "When MUST this escalate to a human?",
        "What's IN scope vs OUT of scope?",
    ],
    ContentType.SKILLS_GUARDRAILS_SESSION: [
        "What skills does the digital employee need?",
        "What's the brand tone? Formality level?",
        "What languages are needed?",
        "What should the digital employee NEVER do?",
        "What should the digital employee ALWAYS do?",
        "Are there financial limits?",
        "Are there legal/compliance restrictions?",
    ],
    ContentType.TECHNICAL_SESSION: [
        "What systems need to be integrated?",
        "What's the access type (read/write)?",
        "What data fields are needed?",
        "Is API access available?",
        "Who's the technical contact?",
        "What are the security requirements?",
        "What are the compliance requirements?",
    ],
    ContentType.SIGNOFF_SESSION: [
        "Are all open items resolved?",
        "Are all decisions documented?",
        "Are risks identified and mitigated?",
        "Who is providing final approval?",
        "Are there any conditions on approval?",
    ],
    ContentType.REQUIREMENTS_DOCUMENT: [
        "Are functional requirements clearly defined?",
        "Are non-functional requirements specified?",
        "Are acceptance criteria included?",
        "Is scope clearly bounded?",
    ],
    ContentType.TECHNICAL_SPEC: [
        "Are API endpoints documented?",
        "Are data schemas defined?",
        "Are authentication requirements specified?",
        "Are error handling approaches documented?",
    ],
    ContentType.PROCESS_DOCUMENT: [
        "Is the process flow clearly documented?",
        "Are roles and responsibilities defined?",
        "Are exceptions and escalations covered?",
        "Are SLAs specified?",
    ],
    ContentType.UNKNOWN: [],
}


def get_checklist(content_type: ContentType) -> list[str]:
    """Checklist questions a piece of content of this type should answer."""
    return list(CHECKLISTS.get(content_type, []))


EXPECTED_TYPES: dict[ContentType, list[ItemType]] = {
    ContentType.KICKOFF_SESSION: [
        ItemType.STAKEHOLDER,
        ItemType.GOAL,
        ItemType.KPI_TARGET,
        ItemType.VOLUME_EXPECTATION,
        ItemType.BUSINESS_CASE,
    ],
    ContentType.PROCESS_DESIGN_SESSION: [
        ItemType.HAPPY_PATH_STEP,
        ItemType.EXCEPTION_CASE,
        ItemType.CASE_TYPE,
        ItemType.CHANNEL,
        ItemType.ESCALATION_TRIGGER,
        ItemType.SCOPE_IN,
    ],
    ContentType.SKILLS_GUARDRAILS_SESSION: [
        ItemType.SKILL_ANSWER,
        ItemType.BRAND_TONE,
        ItemType.GUARDRAIL_NEVER,
        ItemType.GUARDRAIL_ALWAYS,
    ],
    ContentType.TECHNICAL_SESSION: [
        ItemType.SYSTEM_INTEGRATION,
        ItemType.DATA_FIELD,
        ItemType.API_ENDPOINT,
        ItemType.SECURITY_REQUIREMENT,
    ],
    ContentType.SIGNOFF_SESSION: [
        ItemType.DECISION,
        ItemType.APPROVAL,
        ItemType.OPEN_ITEM,
        ItemType.RISK,
    ],
    ContentType.REQUIREMENTS_DOCUMENT: [
        ItemType.BUSINESS_RULE,
        ItemType.SCOPE_IN,
        ItemType.SCOPE_OUT,
    ],
    ContentType.TECHNICAL_SPEC: [
        ItemType.API_ENDPOINT,
        ItemType.DATA_FIELD,
        ItemType.AUTH_REQUIREMENT,
        ItemType.ERROR_HANDLING,
    ],
    ContentType.PROCESS_DOCUMENT: [
        ItemType.HAPPY_PATH_STEP,
        ItemType.EXCEPTION_CASE,
        ItemType.ESCALATION_TRIGGER,
    ],
    ContentType.UNKNOWN: [],
}


def expected_type_coverage(content_type: ContentType, found_tags: list[str]) -> tuple[float, list[ItemType]]:
    """Share of the expected item types that appear among extracted tags.

    Returns:
        Tuple of (coverage in [0, 1], missing expected types). Content types
        without expectations report full coverage.
    """
    expected = EXPECTED_TYPES.get(content_type, [])
    if not expected:
        return 1.0, []
    found = {resolve_item_type(tag) for tag in found_tags}
    missing = [item_type for item_type in expected if item_type not in found]
    return (len(expected) - len(missing)) / len(expected), missing
