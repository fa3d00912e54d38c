"""
Text-generation backends.
"""

from alchemist.providers.base import (
    HttpProviderAdapter,
    ProviderAdapter,
    classify_status,
)
from alchemist.providers.gemini import GeminiAdapter
from alchemist.providers.openai import OpenAIChatAdapter

__all__ = [
    "ProviderAdapter",
    "HttpProviderAdapter",
    "classify_status",
    "GeminiAdapter",
    "OpenAIChatAdapter",
]
