"""
LLM Replay.

Re-executes logged LLM gateway requests against live providers and compares
cost, latency, token usage and output with the original execution.
"""

__version__ = "0.1.0"
