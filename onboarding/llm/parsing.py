"""Recover JSON objects from free-form model output."""

import json
import re

import structlog

logger = structlog.get_logger(__name__)

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```", re.IGNORECASE)


class JSONRecoveryError(ValueError):
    """No JSON object could be recovered from the response."""

    pass


def extract_json_object(text: str) -> str | None:
    """Find the first balanced JSON object in text.

    Handles preamble/reasoning before the JSON and braces inside strings.

    Args:
        text: Text that may contain JSON.

    Returns:
        Extracted JSON string or None.
    """
    brace_count = 0
    start_idx = None
    in_string = False
    escape_next = False

    for i, char in enumerate(text):
        if escape_next:
            escape_next = False
            continue
        if char == "\\" and in_string:
            escape_next = True
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue

        if char == "{":
            if brace_count == 0:
                start_idx = i
            brace_count += 1
        elif char == "}" and brace_count > 0:
            brace_count -= 1
            if brace_count == 0 and start_idx is not None:
                return text[start_idx:i + 1]

    return None


def clean_json_string(text: str) -> str:
    """Clean common issues in JSON strings from LLM output.

    Args:
        text: Raw JSON string.

    Returns:
        Cleaned JSON string.
    """
    text = text.strip("\ufeff\u200b\u200c\u200d")
    # Trailing commas before } or ]
    text = re.sub(r",(\s*[}\]])", r"\1", text)
    return text


def parse_json_response(response: str) -> dict:
    """Parse a JSON object from an LLM response.

    Args:
        response: Raw LLM response string.

    Returns:
        Parsed JSON dict.

    Raises:
        JSONRecoveryError: If no JSON object can be parsed.
    """
    if not response or not response.strip():
        raise JSONRecoveryError("Empty response from model")

    text = response.strip()

    match = _CODE_BLOCK.search(text)
    if match and match.group(1).strip().startswith("{"):
        text = match.group(1).strip()

    for candidate in (text, extract_json_object(text), extract_json_object(response)):
        if not candidate:
            continue
        try:
            parsed = json.loads(clean_json_string(candidate))
        except json.JSONDecodeError as e:
            logger.debug("json_candidate_rejected", error=str(e))
            continue
        if isinstance(parsed, dict):
            return parsed

    logger.warning(
        "json_parse_error",
        response_preview=text[:300],
    )
    raise JSONRecoveryError(f"Could not parse JSON from model response: {text[:150]}")
