"""Model pricing."""

from project_agent.utils.logging import get_logger

logger = get_logger(__name__)

# USD per 1,000 tokens
MODEL_COSTS: dict[str, dict[str, float]] = {
    "claude-sonnet-4-20250514": {"prompt": 0.003, "completion": 0.015},
    "claude-3-7-sonnet-20250219": {"prompt": 0.003, "completion": 0.015},
    "claude-3-5-sonnet-20241022": {"prompt": 0.003, "completion": 0.015},
    "claude-3-5-haiku-20241022": {"prompt": 0.0008, "completion": 0.004},
    "claude-opus-4-20250514": {"prompt": 0.015, "completion": 0.075},
}


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int, default_model: str | None = None) -> float:
    """Calculate the USD cost of a model call.

    Args:
        model: Model that served the call
        prompt_tokens: Input tokens billed
        completion_tokens: Output tokens billed
        default_model: Model whose pricing applies when `model` is not priced

    Returns:
        Cost in USD, or 0.0 if neither model is priced
    """
    costs = MODEL_COSTS.get(model) or MODEL_COSTS.get(default_model or "")
    if costs is None:
        logger.debug(f"No pricing for model {model}")
        return 0.0
    return (prompt_tokens * costs["prompt"]) / 1000 + (completion_tokens * costs["completion"]) / 1000
