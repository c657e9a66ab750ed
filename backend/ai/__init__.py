"""
AI Package
Prompt construction and vendor protocol adapters for instruction generation.
"""

from .prompts import build_instruction_messages, fallback_instruction
from .providers import get_adapter, ProviderAdapter

__all__ = [
    "build_instruction_messages",
    "fallback_instruction",
    "get_adapter",
    "ProviderAdapter",
]
