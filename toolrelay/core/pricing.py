# Toolrelay - OpenAI-Compatible Tool-Calling Gateway
# Copyright (c) 2026 George Scott Foley
# ORCID: 0009-0006-4957-0540
# Email: Georgescottfoley@proton.me
# Licensed under the MIT License - see LICENSE file for details

"""
Model Pricing

Static price table used for the usage audit record.
Prices are USD per token; unknown models fall back to the default entry.
"""

import logging
from dataclasses import dataclass
from decimal import Decimal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelPricing:
    """Pricing for a model, in USD per token."""

    prompt_price: Decimal
    completion_price: Decimal

    @classmethod
    def per_thousand(cls, prompt: str, completion: str) -> "ModelPricing":
        return cls(
            prompt_price=Decimal(prompt) / Decimal(1000),
            completion_price=Decimal(completion) / Decimal(1000),
        )

    def calculate_cost(self, prompt_tokens: int, completion_tokens: int) -> Decimal:
        """Calculate total cost for token usage."""
        return Decimal(prompt_tokens) * self.prompt_price + Decimal(
            completion_tokens
        ) * self.completion_price


DEFAULT_PRICING_MODEL = "gpt-3.5-turbo"

MODEL_PRICING: dict[str, ModelPricing] = {
    "gpt-4": ModelPricing.per_thousand("0.03", "0.06"),
    "gpt-3.5-turbo": ModelPricing.per_thousand("0.001", "0.002"),
    "claude-3-opus": ModelPricing.per_thousand("0.015", "0.075"),
    "claude-3-sonnet": ModelPricing.per_thousand("0.003", "0.015"),
    "gemini-pro": ModelPricing.per_thousand("0.000125", "0.000375"),
}


def get_model_pricing(model: str) -> ModelPricing:
    """
    Get pricing for a model.

    Exact identifiers only; anything else uses the default entry.
    """
    pricing = MODEL_PRICING.get(model)
    if pricing is None:
        logger.debug(f"No pricing for model {model!r}, using {DEFAULT_PRICING_MODEL}")
        pricing = MODEL_PRICING[DEFAULT_PRICING_MODEL]
    return pricing


def calculate_cost(model: str, prompt_tokens: int, completion_tokens: int) -> Decimal:
    """cost = prompt_tokens * prompt_price + completion_tokens * completion_price"""
    return get_model_pricing(model).calculate_cost(prompt_tokens, completion_tokens)


__all__ = [
    "DEFAULT_PRICING_MODEL",
    "MODEL_PRICING",
    "ModelPricing",
    "calculate_cost",
    "get_model_pricing",
]
