"""LLM access: client construction, gateway and JSON recovery."""

from onboarding.llm.gateway import (
    GatewayError,
    GatewayMalformedResponseError,
    GatewayProviderError,
    GatewayTask,
    GatewayTimeoutError,
    ModelGateway,
    OllamaGateway,
    validate_response,
)
from onboarding.llm.rate_limit import RateLimiter

__all__ = [
    "GatewayError",
    "GatewayMalformedResponseError",
    "GatewayProviderError",
    "GatewayTask",
    "GatewayTimeoutError",
    "ModelGateway",
    "OllamaGateway",
    "RateLimiter",
    "validate_response",
]
