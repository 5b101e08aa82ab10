"""Tests for the per-run guardrails."""

from __future__ import annotations

from decimal import Decimal

import pytest
from solders.pubkey import Pubkey

from agentic_wallet.config import GuardrailsConfig
from agentic_wallet.errors import (
    ActionBudgetExceeded,
    ConfigurationError,
    InvalidAmount,
    KillSwitchActive,
    LimitExceeded,
    PolicyRejection,
    ProgramNotAllowed,
)
from agentic_wallet.ledger.programs import (
    ASSOCIATED_TOKEN_PROGRAM_ID,
    SYSTEM_PROGRAM_ID,
    TOKEN_PROGRAM_ID,
)
from agentic_wallet.security.actions import ProgramInvocation, TokenTransfer, ValueTransfer
from agentic_wallet.security.guardrails import Guardrails


def make(**overrides) -> Guardrails:
    return Guardrails(GuardrailsConfig(**overrides))


class TestActionBudget:
    def test_nth_call_passes_and_next_fails(self) -> None:
        g = make(max_actions_per_run=3)
        g.assert_programs_allowed("a", [SYSTEM_PROGRAM_ID])
        g.assert_sol_transfer("b", 0.01)
        g.assert_token_amount("c", 1, 6)

        with pytest.raises(ActionBudgetExceeded) as exc_info:
            g.assert_programs_allowed("d", [SYSTEM_PROGRAM_ID])

        assert exc_info.value.limit == 3
        assert exc_info.value.observed == 4
        assert exc_info.value.label == "d"

    @pytest.mark.parametrize(
        "call",
        [
            lambda g: g.assert_programs_allowed("x", [TOKEN_PROGRAM_ID]),
            lambda g: g.assert_sol_transfer("x", "0.001"),
            lambda g: g.assert_token_amount("x", 1, 0),
        ],
    )
    def test_budget_latches_for_every_check_type(self, call) -> None:
        g = make(max_actions_per_run=1)
        g.assert_token_amount("first", 1, 0)
        with pytest.raises(ActionBudgetExceeded):
            g.assert_token_amount("second", 1, 0)

        with pytest.raises(ActionBudgetExceeded):
            call(g)
        assert g.action_count == 3
        assert g.remaining_actions == 0

    def test_rejected_check_still_counts(self) -> None:
        g = make(max_actions_per_run=2)
        with pytest.raises(LimitExceeded):
            g.assert_token_amount("too-big", 51, 0)
        assert g.action_count == 1
        g.assert_token_amount("ok", 1, 0)
        with pytest.raises(ActionBudgetExceeded):
            g.assert_token_amount("ok-but-late", 1, 0)

    def test_instances_are_independent(self) -> None:
        a = make(max_actions_per_run=1)
        b = make(max_actions_per_run=1)
        a.assert_token_amount("a", 1, 0)
        b.assert_token_amount("b", 1, 0)
        assert a.action_count == b.action_count == 1


class TestKillSwitch:
    def test_blocks_first_call(self) -> None:
        g = make(kill_switch=True)
        with pytest.raises(KillSwitchActive):
            g.assert_programs_allowed("first", [SYSTEM_PROGRAM_ID])
        assert g.action_count == 0

    @pytest.mark.parametrize(
        "call",
        [
            lambda g: g.assert_sol_transfer("x", 0.01),
            lambda g: g.assert_token_amount("x", 1, 6),
            lambda g: g.authorize(ValueTransfer("x", 1)),
        ],
    )
    def test_blocks_every_check(self, call) -> None:
        with pytest.raises(KillSwitchActive):
            call(make(kill_switch=True))

    def test_disabled_wins_over_kill_switch(self) -> None:
        g = make(enabled=False, kill_switch=True)
        g.assert_sol_transfer("x", 0.01)
        assert g.action_count == 0


class TestDisabled:
    def test_everything_allowed_and_not_counted(self) -> None:
        g = make(enabled=False, max_actions_per_run=0)
        g.assert_programs_allowed("x", [Pubkey.new_unique()])
        g.assert_sol_transfer("x", 1000)
        g.assert_token_amount("x", 10**18, 0)
        assert g.action_count == 0


class TestPrograms:
    def test_default_allow_list(self) -> None:
        g = make()
        g.assert_programs_allowed(
            "token", [SYSTEM_PROGRAM_ID, TOKEN_PROGRAM_ID, ASSOCIATED_TOKEN_PROGRAM_ID]
        )

    def test_unknown_program_named_in_rejection(self) -> None:
        rogue = Pubkey.new_unique()
        g = make()
        with pytest.raises(ProgramNotAllowed) as exc_info:
            g.assert_programs_allowed("swap", [TOKEN_PROGRAM_ID, rogue])

        assert str(rogue) in str(exc_info.value)
        assert exc_info.value.observed == rogue
        assert exc_info.value.to_dict()["code"] == "ProgramNotAllowed"

    def test_invalid_allow_list_entry(self) -> None:
        with pytest.raises(ConfigurationError):
            make(allow_programs=["not-a-pubkey"])


class TestSolTransfer:
    def test_limit_is_inclusive(self) -> None:
        make().assert_sol_transfer("x", 0.1)

    def test_over_limit(self) -> None:
        with pytest.raises(LimitExceeded) as exc_info:
            make().assert_sol_transfer("x", 0.11)
        assert exc_info.value.limit == Decimal("0.1")

    @pytest.mark.parametrize("amount", [0, -1, float("nan"), float("inf"), "abc"])
    def test_invalid_amounts(self, amount) -> None:
        with pytest.raises(InvalidAmount):
            make().assert_sol_transfer("x", amount)


class TestTokenAmount:
    def test_exact_limit_passes(self) -> None:
        make(max_tokens_per_tx=50).assert_token_amount("x", 50_000_000, 6)

    def test_one_unit_over_fails(self) -> None:
        with pytest.raises(LimitExceeded):
            make(max_tokens_per_tx=50).assert_token_amount("x", 50_000_001, 6)

    def test_whole_token_over_fails(self) -> None:
        g = make(max_tokens_per_tx=50)
        with pytest.raises(LimitExceeded) as exc_info:
            g.assert_token_amount("harness:seed-mint", 51_000_000, 6)
        assert exc_info.value.observed == Decimal(51)
        assert "harness:seed-mint" in str(exc_info.value)
        assert g.action_count == 1

    @pytest.mark.parametrize("amount_raw", [0, -5])
    def test_non_positive(self, amount_raw: int) -> None:
        with pytest.raises(InvalidAmount):
            make().assert_token_amount("x", amount_raw, 6)


class TestAuthorize:
    def test_value_transfer_converts_lamports(self) -> None:
        g = make(max_sol_per_tx=0.1)
        g.authorize(ValueTransfer("pay", 100_000_000))
        with pytest.raises(LimitExceeded):
            g.authorize(ValueTransfer("pay", 100_000_001))

    def test_token_transfer(self) -> None:
        g = make(max_tokens_per_tx=2)
        g.authorize(TokenTransfer("send", 2_000_000, 6))
        with pytest.raises(LimitExceeded):
            g.authorize(TokenTransfer("send", 2_000_001, 6))

    def test_program_invocation(self) -> None:
        with pytest.raises(ProgramNotAllowed):
            make().authorize(ProgramInvocation("call", (Pubkey.new_unique(),)))

    def test_unknown_action_type(self) -> None:
        with pytest.raises(TypeError):
            make().authorize(object())  # type: ignore[arg-type]

    def test_rejections_share_a_base(self) -> None:
        with pytest.raises(PolicyRejection):
            make(kill_switch=True).authorize(TokenTransfer("send", 1, 0))


class TestFromEnv:
    def test_defaults(self) -> None:
        g = Guardrails.from_env({})
        assert g.enabled
        assert g.config.max_actions_per_run == 25
        assert g.config.max_tokens_per_tx == 50

    def test_overrides(self) -> None:
        g = Guardrails.from_env(
            {
                "GUARDRAILS_ENABLED": "1",
                "KILL_SWITCH": "1",
                "MAX_SOL_PER_TX": "0.5",
                "MAX_TOKENS_PER_TX": "10",
                "MAX_ACTIONS_PER_RUN": "3",
            }
        )
        assert g.config.kill_switch
        assert g.config.max_sol_per_tx == 0.5
        assert g.config.max_tokens_per_tx == 10
        assert g.config.max_actions_per_run == 3

    def test_only_zero_disables(self) -> None:
        assert not Guardrails.from_env({"GUARDRAILS_ENABLED": "0"}).enabled
        assert Guardrails.from_env({"GUARDRAILS_ENABLED": "false"}).enabled

    def test_only_one_arms_kill_switch(self) -> None:
        assert not Guardrails.from_env({"KILL_SWITCH": "true"}).config.kill_switch

    def test_bad_number(self) -> None:
        with pytest.raises(ConfigurationError):
            Guardrails.from_env({"MAX_ACTIONS_PER_RUN": "many"})
