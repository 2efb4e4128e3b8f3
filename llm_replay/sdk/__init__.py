"""
SDK for LLM Replay.

Provides the outbound provider dispatcher.
"""

from .openai_client import DispatchResult, ProviderDispatcher

__all__ = ["DispatchResult", "ProviderDispatcher"]
