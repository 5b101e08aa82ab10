from agentic_wallet.state.store import STATE_VERSION, MintInfo, RunState, StateStore

__all__ = ["STATE_VERSION", "MintInfo", "RunState", "StateStore"]
