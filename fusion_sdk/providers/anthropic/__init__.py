# fusion_sdk/providers/anthropic/__init__.py
# SPDX-License-Identifier: Apache-2.0

"""
Anthropic provider: Messages API text generation.
"""

from fusion_sdk.providers.anthropic.api import (
    ANTHROPIC_API_VERSION,
    AnthropicApiConfiguration,
    AnthropicError,
    failed_anthropic_call_response_handler,
)
from fusion_sdk.providers.anthropic.text import (
    AnthropicTextGenerationModel,
    AnthropicTextGenerationSettings,
)

__all__ = [
    "ANTHROPIC_API_VERSION",
    "AnthropicApiConfiguration",
    "AnthropicError",
    "failed_anthropic_call_response_handler",
    "AnthropicTextGenerationModel",
    "AnthropicTextGenerationSettings",
]
