"""LLM module."""

from .completion_client import (
    AnthropicCompletionClient,
    CompletionError,
    GroqCompletionClient,
    ICompletionClient,
    create_completion_client,
)

__all__ = [
    "AnthropicCompletionClient",
    "CompletionError",
    "GroqCompletionClient",
    "ICompletionClient",
    "create_completion_client",
]
