"""Multi-agent ring-transfer harness."""

from agentic_wallet.harness.multi_agent import HarnessReport, MultiAgentHarness

__all__ = ["HarnessReport", "MultiAgentHarness"]
