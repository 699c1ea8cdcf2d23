"""LLM prompt templates for pipeline stages and quality judges."""

# Curly braces must be escaped as {{ }} for LangChain templates
JSON_ONLY_INSTRUCTION = """
CRITICAL: You MUST respond with ONLY a valid JSON object.
- Do NOT include any thinking, reasoning, or explanation.
- Do NOT use markdown code blocks.
- Start your response directly with the opening brace
- No text before or after the JSON."""

# =============================================================================
# Stage 1: Classification
# =============================================================================

CLASSIFICATION_SYSTEM_PROMPT = """You classify material from digital employee onboarding projects.

CONTENT TYPES:
- KICKOFF_SESSION: business case, goals, volumes, costs, stakeholders
- PROCESS_DESIGN_SESSION: happy path, case types, exceptions, channels, escalations, scope
- SKILLS_GUARDRAILS_SESSION: skills, brand tone, languages, things to never/always do, limits
- TECHNICAL_SESSION: systems, integrations, data fields, APIs, security
- SIGNOFF_SESSION: open items, decisions, risks, approvals
- REQUIREMENTS_DOCUMENT: written functional/non-functional requirements
- TECHNICAL_SPEC: written API, schema, authentication, error handling documentation
- PROCESS_DOCUMENT: written process flows, roles, SLAs
- UNKNOWN: none of the above

RULES:
1. Pick exactly one type
2. Confidence reflects how clearly the content matches that type (0.0 - 1.0)
3. Quote short key indicators from the content that support the decision
""" + JSON_ONLY_INSTRUCTION

CLASSIFICATION_USER_PROMPT = """Classify this content.

FILENAME: {filename}

CONTENT:
---
{content}
---

Respond with ONLY this JSON structure:
{{
  "type": "KICKOFF_SESSION|PROCESS_DESIGN_SESSION|SKILLS_GUARDRAILS_SESSION|TECHNICAL_SESSION|SIGNOFF_SESSION|REQUIREMENTS_DOCUMENT|TECHNICAL_SPEC|PROCESS_DOCUMENT|UNKNOWN",
  "confidence": 0.0,
  "key_indicators": ["short quote"],
  "missing_questions": ["question this type of session should answer but this content does not"]
}}"""

# =============================================================================
# Stage 2: General Extraction
# =============================================================================

GENERAL_EXTRACTION_SYSTEM_PROMPT = """You extract every business and technical fact from onboarding material.

CATEGORIES: BUSINESS, PROCESS, SCOPE, CHANNELS, SKILLS, COMMUNICATION, GUARDRAILS, INTEGRATIONS, SECURITY, DECISIONS

RULES:
1. Prefer recall: extract every fact, even minor ones
2. Each entity has a category, a specific type tag, and the fact as content
3. Include the verbatim source quote and the speaker when available
4. Never invent facts that are not in the content
5. Confidence reflects how explicitly the fact was stated (0.0 - 1.0)
""" + JSON_ONLY_INSTRUCTION

GENERAL_EXTRACTION_USER_PROMPT = """Extract all entities from this {content_type} content.

CONTENT:
---
{content}
---

Respond with ONLY this JSON structure:
{{
  "entities": [
    {{
      "id": "e1",
      "category": "BUSINESS",
      "type": "STAKEHOLDER",
      "content": "The fact",
      "confidence": 0.9,
      "source_quote": "verbatim quote",
      "source_speaker": "Speaker name or null",
      "source_timestamp": "00:12:30 or null"
    }}
  ]
}}"""

# =============================================================================
# Stage 3: Specialized Extraction
# =============================================================================

SPECIALIZED_EXTRACTION_SYSTEM_PROMPT = """You refine extracted entities into typed onboarding items.

ITEM TYPES: {item_types}

RULES:
1. Work ONLY from the entities provided; do not add facts that are not there
2. Assign each item the most specific item type
3. Fill structured_data with type-specific fields when the entity states them
4. Mark which checklist questions the entities answer
""" + JSON_ONLY_INSTRUCTION

SPECIALIZED_EXTRACTION_USER_PROMPT = """CONTENT TYPE: {content_type}

CHECKLIST:
{checklist}

ENTITIES:
{entities_json}

Respond with ONLY this JSON structure:
{{
  "items": [
    {{
      "type": "ITEM_TYPE",
      "content": "The fact",
      "confidence": 0.9,
      "source_quote": "verbatim quote or null",
      "source_speaker": "Speaker name or null",
      "structured_data": {{}}
    }}
  ],
  "checklist": {{
    "questions_asked": ["checklist question answered"],
    "questions_missing": ["checklist question not answered"]
  }}
}}"""

# =============================================================================
# Quality judges
# =============================================================================

CLASSIFICATION_JUDGE_SYSTEM_PROMPT = """You review the classification of onboarding content.

Assess:
1. Is the assigned content type correct?
2. Are the key indicators actually present in the content?
3. Is the stated confidence appropriate?
""" + JSON_ONLY_INSTRUCTION

CLASSIFICATION_JUDGE_USER_PROMPT = """ASSIGNED TYPE: {content_type}
STATED CONFIDENCE: {confidence}
KEY INDICATORS: {key_indicators}

CONTENT:
---
{content}
---

Respond with ONLY this JSON structure:
{{
  "correct": true,
  "suggested_type": "TYPE or null",
  "indicators_present": true,
  "confidence_appropriate": true,
  "score": 0.0,
  "issues": ["problem description"]
}}"""

COVERAGE_JUDGE_SYSTEM_PROMPT = """You check how completely facts were extracted from onboarding content.

Estimate the share of extractable facts in the content that appear in the extraction, and list important facts that were missed.
""" + JSON_ONLY_INSTRUCTION

COVERAGE_JUDGE_USER_PROMPT = """CONTENT TYPE: {content_type}

CONTENT:
---
{content}
---

EXTRACTED ENTITIES:
{entities_json}

Respond with ONLY this JSON structure:
{{
  "coverage_score": 0.0,
  "missed_entities": [
    {{"type": "ITEM_TYPE", "content": "missed fact"}}
  ]
}}"""
