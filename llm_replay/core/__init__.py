"""
Core modules for LLM Replay.

This package contains payload reconstruction, pricing, comparison and the
replay orchestrator.
"""
