"""CLI for Agentic Wallet - run guarded wallet agents from the terminal."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import NoReturn

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from agentic_wallet.config import AppConfig, HarnessConfig, load_config, require_passphrase
from agentic_wallet.errors import AgenticWalletError, SimulationFailed

app = typer.Typer(
    name="agentic-wallet",
    help="Autonomous wallet agents with encrypted keys and per-run guardrails.",
    no_args_is_help=True,
)
console = Console()

_options: dict = {"config": None, "rpc": None}


def _version_callback(value: bool):
    if value:
        from importlib.metadata import version
        console.print(f"agentic-wallet {version('agentic-wallet')}")
        raise typer.Exit()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=console, rich_tracebacks=True, show_path=False)],
        force=True,
    )
    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)


@app.callback()
def main(
    config: Path = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML config file",
        envvar="AGENTIC_WALLET_CONFIG",
    ),
    rpc: str = typer.Option(None, "--rpc", help="Preferred RPC URL (overrides RPC_URL)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
):
    """Autonomous wallet agents with encrypted keys and per-run guardrails."""
    _configure_logging(verbose)
    _options["config"] = config
    _options["rpc"] = rpc


def _load() -> AppConfig:
    return load_config(_options["config"])


def _context():
    from agentic_wallet.flows.common import setup

    ctx = setup(_load(), _options["rpc"])
    if ctx.endpoint is not None:
        console.print(f"[dim]RPC: {ctx.endpoint.name} ({ctx.endpoint.url})[/dim]")
    return ctx


def _fail(exc: Exception) -> NoReturn:
    console.print(f"[red]{type(exc).__name__}: {exc}[/red]")
    raise typer.Exit(1)


def _guardrail_summary(ctx) -> str:
    g = ctx.guardrails
    return (
        f"[dim]Guardrails: {'on' if g.enabled else 'off'}, "
        f"{g.action_count}/{g.config.max_actions_per_run} actions used[/dim]"
    )


# ------------------------------------------------------------------
# agent
# ------------------------------------------------------------------


@app.command()
def agent(agent_id: str = typer.Argument(help="Agent id, e.g. agent-001")):
    """Create (or unlock) an agent's encrypted keystore and show its address."""
    from agentic_wallet.wallet.manager import WalletDirectory

    try:
        config = _load()
        wallets = WalletDirectory(config.keystore_dir, require_passphrase(config))
        existed = wallets.has_agent(agent_id)
        identity = wallets.ensure(agent_id)
    except (AgenticWalletError, ValueError) as exc:
        _fail(exc)

    status = "[yellow]unlocked existing keystore[/yellow]" if existed else "[bold green]created[/bold green]"
    console.print(Panel(
        f"{status}\n\n"
        f"Address: [cyan]{identity.pubkey}[/cyan]\n"
        f"Keystore: {wallets.keystore_path(agent_id)}",
        title=agent_id,
    ))


@app.command("agents")
def list_agents():
    """List agents that have a keystore."""
    from agentic_wallet.wallet.manager import WalletDirectory

    try:
        config = _load()
        wallets = WalletDirectory(config.keystore_dir, require_passphrase(config))
        ids = wallets.list_agents()
    except AgenticWalletError as exc:
        _fail(exc)

    if not ids:
        console.print("[yellow]No agents yet.[/yellow] Run 'agentic-wallet agent agent-001' first.")
        return

    table = Table(title=f"Agents ({config.keystore_dir})")
    table.add_column("Agent", style="cyan")
    table.add_column("Address")
    for agent_id in ids:
        try:
            table.add_row(agent_id, str(wallets.load(agent_id).pubkey))
        except AgenticWalletError as exc:
            table.add_row(agent_id, f"[red]{exc}[/red]")
    console.print(table)


# ------------------------------------------------------------------
# balance / transfer
# ------------------------------------------------------------------


@app.command()
def balance(agent_id: str = typer.Argument(help="Agent id, e.g. agent-001")):
    """Show an agent's live SOL balance."""
    from agentic_wallet.token.amounts import lamports_to_sol

    try:
        with _context() as ctx:
            identity = ctx.wallets.ensure(agent_id)
            lamports = ctx.wallets.balance(identity.pubkey)
    except (AgenticWalletError, ValueError) as exc:
        _fail(exc)

    console.print(f"[bold]{agent_id}[/bold] [cyan]{identity.pubkey}[/cyan]")
    console.print(f"  {lamports_to_sol(lamports):.4f} SOL ({lamports} lamports)")


@app.command()
def transfer(
    source: str = typer.Option("agent-001", "--from", help="Sending agent id"),
    destination: str = typer.Option("agent-002", "--to", help="Receiving agent id"),
    amount: str = typer.Option("0.05", "--amount", "-a", help="Amount in SOL"),
):
    """Transfer SOL between agents (simulation only when underfunded)."""
    from agentic_wallet.flows.sol_transfer import run_sol_transfer

    try:
        with _context() as ctx:
            result = run_sol_transfer(ctx, source, destination, amount)
            summary = _guardrail_summary(ctx)
    except SimulationFailed as exc:
        console.print(f"[red]Simulation error: {exc.result.err}[/red]")
        for line in exc.result.logs:
            console.print(f"  [dim]{line}[/dim]")
        raise typer.Exit(1)
    except (AgenticWalletError, ValueError) as exc:
        _fail(exc)

    if result.simulated_only:
        sim = result.simulation
        body = (
            f"[yellow]{source} is not funded enough to send {amount} SOL yet.[/yellow]\n\n"
            f"Simulation: {'unavailable' if sim is None else (sim.err or 'OK')}\n"
            f"Fund {source}: [cyan]{result.source}[/cyan]"
        )
        console.print(Panel(body, title="Simulation Mode"))
        if sim is not None:
            for line in sim.logs:
                console.print(f"  [dim]{line}[/dim]")
    else:
        console.print(Panel(
            f"[bold green]Transfer confirmed![/bold green]\n\n"
            f"{source} -> {destination}: {amount} SOL\n"
            f"Tx: [cyan]{result.signature}[/cyan]",
            title="SOL Transfer",
        ))
    console.print(summary)


# ------------------------------------------------------------------
# plan / harness
# ------------------------------------------------------------------


@app.command()
def plan():
    """Run the two-agent token plan (creates the mint on first run)."""
    from agentic_wallet.flows.agent_plan import run_agent_plan
    from agentic_wallet.token.amounts import format_tokens

    try:
        with _context() as ctx:
            report = run_agent_plan(ctx)
            summary = _guardrail_summary(ctx)
    except (AgenticWalletError, ValueError) as exc:
        _fail(exc)

    console.print(
        f"Mint: [cyan]{report.mint}[/cyan] "
        f"({'created' if report.mint_created else 'reused'}, {report.decimals} decimals)"
    )
    table = Table(title="Plan Steps")
    table.add_column("Action", style="cyan")
    table.add_column("Result")
    table.add_column("Tx", style="dim")
    for step in report.steps:
        if step.executed:
            outcome = "[green]executed[/green]"
        elif step.rejection:
            outcome = f"[red]{step.rejection}[/red]"
        else:
            outcome = "skipped"
        table.add_row(type(step.action).__name__, outcome, step.signature or "")
    console.print(table)
    for agent_id, raw in report.starting_balances.items():
        console.print(f"  [dim]{agent_id} started with {format_tokens(raw, report.decimals)} tokens[/dim]")
    console.print(summary)


@app.command()
def harness(
    agents: int = typer.Option(None, "--agents", "-n", help="Number of agents"),
    rounds: int = typer.Option(None, "--rounds", "-r", help="Number of rounds"),
    seed: int = typer.Option(None, "--seed", help="Tokens minted to each empty agent"),
):
    """Run the multi-agent ring-transfer harness."""
    try:
        with _context() as ctx:
            overrides = {
                k: v
                for k, v in {
                    "agent_count": agents,
                    "rounds": rounds,
                    "seed_tokens_per_agent": seed,
                }.items()
                if v is not None
            }
            cfg = HarnessConfig.model_validate({**ctx.config.harness.model_dump(), **overrides})
            report = ctx.harness().run(cfg)
            summary = _guardrail_summary(ctx)
    except (AgenticWalletError, ValueError) as exc:
        _fail(exc)

    console.print(f"Mint: [cyan]{report.mint}[/cyan]  Bank: {report.bank}")
    if report.seeded:
        console.print(f"Seeded: {', '.join(report.seeded)}")

    for round_number in sorted(report.balances):
        table = Table(title=f"Round {round_number}")
        table.add_column("Agent", style="cyan")
        table.add_column("Tokens", justify="right")
        for agent_id, amount in report.formatted_balances(round_number).items():
            table.add_row(agent_id, amount)
        console.print(table)

    console.print(f"Transfers: {len(report.transfers)}")
    for rejection in report.rejections:
        console.print(f"[yellow]Rejected ({rejection.agent_id}, round {rejection.round}): {rejection.message}[/yellow]")
    console.print(summary)


# ------------------------------------------------------------------
# state / endpoints
# ------------------------------------------------------------------


@app.command()
def state():
    """Show the persisted run state (mint and token accounts)."""
    from agentic_wallet.state.store import StateStore

    try:
        config = _load()
        store = StateStore(config.resolved_state_path)
        run_state = store.load()
    except AgenticWalletError as exc:
        _fail(exc)

    console.print(f"[dim]State file: {store.path}[/dim]")
    if run_state.mint is None:
        console.print("[yellow]No mint recorded.[/yellow] Run 'agentic-wallet plan' first.")
    else:
        console.print(f"Mint: [cyan]{run_state.mint.address}[/cyan] ({run_state.mint.decimals} decimals)")

    if run_state.atas:
        table = Table(title="Token Accounts")
        table.add_column("Agent", style="cyan")
        table.add_column("Account")
        for agent_id, address in sorted(run_state.atas.items()):
            table.add_row(agent_id, address)
        console.print(table)


@app.command()
def endpoints():
    """List the built-in RPC endpoints in probe order."""
    from agentic_wallet.ledger.endpoints import candidate_endpoints

    try:
        config = _load()
    except AgenticWalletError as exc:
        _fail(exc)

    table = Table(title="RPC Endpoints")
    table.add_column("Name", style="cyan")
    table.add_column("URL")
    for endpoint in candidate_endpoints(_options["rpc"] or config.rpc_url):
        table.add_row(endpoint.name, endpoint.url)
    console.print(table)


if __name__ == "__main__":
    app()
