"""Agentic Wallet - autonomous wallet agents with encrypted keys and guardrails."""

__version__ = "0.1.0"
