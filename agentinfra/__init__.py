"""Conversation events, a JSONL session store and a shell execution tool for LLM agents."""

__version__ = "0.1.0"
__all__ = ["events", "jsonl_store", "shell_tool"]