#!/usr/bin/env python3
"""
vestbond CLI

Inspect deployment parameters, preview the bonus ramp and stake quotes, and
replay issuer scenarios from YAML/JSON files.
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, Optional

import click
import yaml
from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from vestbond.core.bonus import BonusRamp, validate_bonus_range
from vestbond.core.clock import ManualClock
from vestbond.core.config import DEFAULT_CONFIG_DIR, ConfigManager, Environment
from vestbond.core.contracts.erc20 import ERC20Token
from vestbond.core.exceptions import BondError, ConfigurationError
from vestbond.core.issuer import BondIssuer
from vestbond.core.logging_config import setup_logging_from_config
from vestbond.core.oracle import StaticReserveOracle
from vestbond.core.simulation import ScenarioRunner, load_scenario

logger = logging.getLogger(__name__)
console = Console()


def _cli_fail(exc: Exception, exit_code: int = 1) -> None:
    """Centralized CLI error handler for consistent messaging."""
    logger.error("CLI error: %s", exc, exc_info=True)
    console.print(f"[bold red]Error:[/] {exc}")
    sys.exit(exit_code)


def _parse_ratio(value: str) -> tuple[int, int]:
    numerator, _, denominator = value.partition("/")
    try:
        return int(numerator), int(denominator or 1)
    except ValueError:
        raise click.BadParameter(f"Ratio must look like 10/1, got '{value}'") from None


def _emit(ctx: click.Context, payload: Dict[str, Any]) -> bool:
    """Print JSON when requested; returns True if output was handled."""
    if ctx.obj.get("json_output"):
        click.echo(json.dumps(payload, indent=2, default=str))
        return True
    return False


# ============================================================================
# CLI Group
# ============================================================================

@click.group()
@click.option(
    "--environment",
    type=click.Choice([env.value for env in Environment]),
    default=None,
    help="Configuration environment (defaults to VESTBOND_ENVIRONMENT or development).",
)
@click.option(
    "--config-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help=f"Directory containing config files (defaults to {DEFAULT_CONFIG_DIR}).",
)
@click.option("--json-output", is_flag=True, help="Output raw JSON")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Override the configured log level.",
)
@click.pass_context
def cli(
    ctx: click.Context,
    environment: Optional[str],
    config_dir: Optional[Path],
    json_output: bool,
    log_level: Optional[str],
):
    """
    vestbond - vesting bond issuer toolkit

    Quote deposits, preview the bonus ramp and simulate issuer scenarios
    against the configured deployment parameters.
    """
    ctx.ensure_object(dict)
    overrides = {"logging.level": log_level.upper()} if log_level else {}
    try:
        manager = ConfigManager(
            environment=environment,
            config_dir=str(config_dir) if config_dir else None,
            cli_overrides=overrides,
        )
    except ConfigurationError as exc:
        raise click.ClickException(str(exc)) from exc

    setup_logging_from_config(manager.logging, environment=manager.environment.value)

    ctx.obj["config"] = manager
    ctx.obj["json_output"] = json_output


# ============================================================================
# Config
# ============================================================================

@cli.group("config")
def config_group():
    """Inspect issuer configuration."""


@config_group.command("show")
@click.option("--section", type=click.Choice(["issuer", "logging"]), help="Return only one section.")
@click.option("--key", help="Return a single value via dot-notation (e.g., issuer.bonus_max).")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["auto", "json", "yaml"]),
    default="auto",
    show_default=True,
)
@click.pass_context
def config_show(ctx: click.Context, section: Optional[str], key: Optional[str], output_format: str):
    """Display the merged configuration for the selected environment."""
    manager: ConfigManager = ctx.obj["config"]
    if key:
        value = manager.get(key)
        if value is None:
            raise click.ClickException(f"Unknown configuration key '{key}'.")
        payload = {"key": key, "value": value, "environment": manager.environment.value}
    elif section:
        payload = {"section": section, "config": manager.get(section), "environment": manager.environment.value}
    else:
        payload = manager.to_dict()

    if ctx.obj.get("json_output") or output_format == "json":
        click.echo(json.dumps(payload, indent=2))
        return
    if output_format == "yaml":
        click.echo(yaml.safe_dump(payload, sort_keys=False))
        return

    table = Table(title=payload.get("section", "Configuration"), box=box.SIMPLE)
    table.add_column("Key", style="cyan")
    table.add_column("Value", style="green")
    if "config" in payload:
        rows = payload["config"].items()
    elif "key" in payload:
        rows = [(payload["key"], payload["value"])]
    else:
        rows = [
            (f"{name}.{k}", v)
            for name in ("issuer", "logging")
            for k, v in payload[name].items()
        ]
    for k, v in rows:
        table.add_row(str(k), str(v))
    console.print(table)


# ============================================================================
# Bonus ramp & quotes
# ============================================================================

@cli.command("bonus")
@click.option("--min", "bonus_min", type=int, default=None, help="Bonus floor (defaults to config).")
@click.option("--max", "bonus_max", type=int, default=None, help="Bonus ceiling (defaults to config).")
@click.option("--points", type=click.IntRange(2, 100), default=5, show_default=True,
              help="Number of evenly spaced points across the ramp.")
@click.pass_context
def bonus_table(ctx: click.Context, bonus_min: Optional[int], bonus_max: Optional[int], points: int):
    """Show the bonus percentage across one ramp cycle."""
    issuer_cfg = ctx.obj["config"].issuer
    bonus_min = issuer_cfg.bonus_min if bonus_min is None else bonus_min
    bonus_max = issuer_cfg.bonus_max if bonus_max is None else bonus_max

    try:
        validate_bonus_range(bonus_min, bonus_max, issuer_cfg.bonus_ceiling)
    except BondError as exc:
        raise click.ClickException(exc.message) from exc

    ramp = BonusRamp(bonus_min, bonus_max, anchor=0, ramp_duration=issuer_cfg.ramp_duration)
    rows = []
    for i in range(points):
        elapsed = issuer_cfg.ramp_duration * i // (points - 1)
        rows.append({"elapsed": elapsed, "bonus": ramp.bonus_at(elapsed)})

    if _emit(ctx, {"bonus_min": bonus_min, "bonus_max": bonus_max, "points": rows}):
        return

    table = Table(title="Bonus ramp", box=box.ROUNDED)
    table.add_column("Elapsed (s)", justify="right", style="cyan")
    table.add_column("Elapsed (days)", justify="right")
    table.add_column("Bonus %", justify="right", style="green")
    for row in rows:
        table.add_row(str(row["elapsed"]), f"{row['elapsed'] / 86400:.1f}", str(row["bonus"]))
    console.print(table)


@cli.command("quote")
@click.argument("value", type=int)
@click.option("--ratio", default="10/1", show_default=True, help="Reserve ratio numerator/denominator.")
@click.option("--elapsed", type=click.IntRange(min=0), default=0, show_default=True,
              help="Seconds since the last bonus-range change.")
@click.pass_context
def quote(ctx: click.Context, value: int, ratio: str, elapsed: int):
    """Preview the claim a deposit of VALUE reference units would create."""
    issuer_cfg = ctx.obj["config"].issuer
    numerator, denominator = _parse_ratio(ratio)

    try:
        clock = ManualClock(0)
        issuer = BondIssuer(
            owner="quote-owner",
            reward_token=ERC20Token(name="Bond Reward", symbol="RWD"),
            reference_token=ERC20Token(name="Bond Reference", symbol="REF"),
            oracle=StaticReserveOracle(numerator, denominator),
            config=issuer_cfg,
            time_provider=clock,
        )
        clock.advance(elapsed)
        result = issuer.quote(value)
    except (BondError, ValueError) as exc:
        raise click.ClickException(str(exc)) from exc

    rejection = None
    try:
        issuer.check_deposit_bounds(result)
    except BondError as exc:
        rejection = exc.message

    payload = {
        "external_value": result.external_value,
        "ratio": f"{numerator}/{denominator}",
        "elapsed": elapsed,
        "normalized": result.normalized,
        "bonus": result.bonus,
        "granted": result.granted,
        "accepted": rejection is None,
        "rejection": rejection,
    }
    if _emit(ctx, payload):
        return

    table = Table(show_header=False, box=box.ROUNDED)
    table.add_row("[bold cyan]Deposit", str(result.external_value))
    table.add_row("[bold cyan]Ratio", payload["ratio"])
    table.add_row("[bold cyan]Normalized", str(result.normalized))
    table.add_row("[bold yellow]Bonus", f"{result.bonus}%")
    table.add_row("[bold green]Granted claim", str(result.granted))
    table.add_row(
        "[bold cyan]Accepted by stake",
        "[green]yes[/]" if rejection is None else f"[red]no[/]: {rejection}",
    )
    console.print(Panel(table, title="[bold green]Stake quote", border_style="green"))


# ============================================================================
# Simulation
# ============================================================================

@cli.command("simulate")
@click.argument("scenario_file", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option("--strict", is_flag=True, help="Exit non-zero if any step is rejected.")
@click.pass_context
def simulate(ctx: click.Context, scenario_file: Path, strict: bool):
    """Replay the steps in SCENARIO_FILE against a fresh issuer."""
    try:
        scenario = load_scenario(scenario_file)
        runner = ScenarioRunner(scenario, config=ctx.obj["config"].issuer)
        result = runner.run()
    except BondError as exc:
        raise click.ClickException(exc.message) from exc

    if not _emit(ctx, result.to_dict()):
        table = Table(title=f"Scenario {scenario_file.name}", box=box.ROUNDED)
        table.add_column("#", justify="right")
        table.add_column("Time", justify="right", style="cyan")
        table.add_column("Operation", style="bold")
        table.add_column("Outcome")
        for step in result.steps:
            outcome = (
                f"[green]{step.result}[/]" if step.ok
                else f"[red]{step.error_type}[/]: {step.error}"
                + (" [yellow](retryable)[/]" if step.recoverable else "")
            )
            table.add_row(str(step.index), str(step.timestamp), step.op, outcome)
        console.print(table)

        state = result.final_state["state"]
        summary = Table(show_header=False, box=box.SIMPLE)
        summary.add_row("Reserve remaining", str(state["reserve_remaining"]))
        summary.add_row("Owner", str(result.final_state["owner"]))
        summary.add_row("Positions", str(len(result.final_state["positions"])))
        summary.add_row(
            "Conservation",
            "[green]ok[/]" if result.conservation_ok else "[red]violated[/]",
        )
        console.print(Panel(summary, title="Final state"))

    if not result.conservation_ok:
        sys.exit(2)
    if strict and result.failures:
        sys.exit(1)


def main():
    """Main CLI entry point"""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Operation cancelled by user[/]")
        sys.exit(130)
    except (BondError, ValueError) as exc:
        _cli_fail(exc)


if __name__ == "__main__":
    main()
