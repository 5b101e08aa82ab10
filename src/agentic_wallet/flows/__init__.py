"""End-to-end flows wired from an :class:`~agentic_wallet.config.AppConfig`."""
