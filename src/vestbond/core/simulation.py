"""
Scenario runner for the bond issuer.

A scenario is a mapping loaded from YAML or JSON:

    start_time: 1700000000
    owner: treasury
    ratio: [10, 1]              # reference units per reward unit
    balances:
      reward: {treasury: 1000000000000000000000}
      reference: {alice: 5000000000000000000}
    steps:
      - {op: add_reserve, caller: treasury, amount: 1000000000000000000000}
      - {op: stake, caller: alice, value: 1000000000000000000}
      - {op: advance, seconds: 62899200}
      - {op: set_time, timestamp: 1800000000}
      - {op: withdraw, caller: alice}

Funded accounts approve the issuer for an unlimited amount on both ledgers
unless ``auto_approve`` is false. Issuer errors are recorded as step
outcomes, flagged ``recoverable`` when resubmitting after a fix may succeed.
Malformed scenarios, including a ``set_time`` that moves the clock
backwards, raise ConfigurationError.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import yaml

from .clock import ManualClock
from .config import IssuerConfig
from .contracts.erc20 import ERC20Token
from .exceptions import BondError, ConfigurationError, get_error_context, is_recoverable_error
from .issuer import BondIssuer, StakeQuote
from .oracle import StaticReserveOracle

logger = logging.getLogger(__name__)

MINTER = "vestbond-minter"


@dataclass
class StepResult:
    index: int
    op: str
    timestamp: int
    ok: bool
    result: Any = None
    error_type: str | None = None
    error: str | None = None
    recoverable: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "index": self.index,
            "op": self.op,
            "timestamp": self.timestamp,
            "ok": self.ok,
            "result": self.result,
            "error_type": self.error_type,
            "error": self.error,
            "recoverable": self.recoverable,
        }


@dataclass
class ScenarioResult:
    steps: list[StepResult] = field(default_factory=list)
    final_state: dict[str, Any] = field(default_factory=dict)
    balances: dict[str, dict[str, int]] = field(default_factory=dict)
    conservation_ok: bool = True

    @property
    def failures(self) -> list[StepResult]:
        return [step for step in self.steps if not step.ok]

    def to_dict(self) -> dict[str, Any]:
        return {
            "steps": [step.to_dict() for step in self.steps],
            "final_state": self.final_state,
            "balances": self.balances,
            "conservation_ok": self.conservation_ok,
        }


def load_scenario(path: str | Path) -> dict[str, Any]:
    """Load a scenario mapping from a .yaml/.yml or .json file."""
    path = Path(path)
    try:
        with open(path, "r") as f:
            if path.suffix.lower() == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigurationError(f"Malformed scenario file {path}: {exc}") from exc

    if not isinstance(data, dict):
        raise ConfigurationError(f"Scenario {path} must be a mapping")
    return data


class ScenarioRunner:
    def __init__(self, scenario: dict[str, Any], config: IssuerConfig | None = None):
        self.scenario = scenario
        self.config = config or IssuerConfig()

        start_time = scenario.get("start_time", 0)
        if not isinstance(start_time, int) or start_time < 0:
            raise ConfigurationError("start_time must be a non-negative integer")
        self.clock = ManualClock(start_time)

        owner = scenario.get("owner", "owner")
        ratio = scenario.get("ratio", [10, 1])
        if not isinstance(ratio, (list, tuple)) or len(ratio) != 2:
            raise ConfigurationError("ratio must be a [numerator, denominator] pair")
        try:
            self.oracle = StaticReserveOracle(*ratio)
        except ValueError as exc:
            raise ConfigurationError(f"Invalid ratio {ratio}: {exc}") from exc

        self.reward_token = ERC20Token(name="Bond Reward", symbol="RWD", owner=MINTER)
        self.reference_token = ERC20Token(name="Bond Reference", symbol="REF", owner=MINTER)
        self.tokens = {"reward": self.reward_token, "reference": self.reference_token}

        self.issuer = BondIssuer(
            owner=owner,
            reward_token=self.reward_token,
            reference_token=self.reference_token,
            oracle=self.oracle,
            config=self.config,
            time_provider=self.clock,
        )

        self._fund_accounts(scenario.get("balances") or {}, scenario.get("auto_approve", True))

        self._handlers: dict[str, Callable[[dict[str, Any]], Any]] = {
            "add_reserve": lambda s: self.issuer.add_reserve(s["caller"], s["amount"]),
            "stake": self._stake,
            "stake_for_remaining": lambda s: self.issuer.stake_for_remaining(s["caller"]),
            "withdraw": lambda s: self.issuer.withdraw(s["caller"]),
            "set_bonus_range": lambda s: self.issuer.set_bonus_range(s["caller"], s["min"], s["max"]),
            "sweep": lambda s: self.issuer.sweep_asset(s["caller"], self._token(s["token"])),
            "transfer_ownership": lambda s: self.issuer.transfer_ownership(s["caller"], s["candidate"]),
            "confirm_ownership": lambda s: self.issuer.confirm_ownership(s["caller"]),
            "cancel_ownership_transfer": lambda s: self.issuer.cancel_ownership_transfer(s["caller"]),
            "advance": lambda s: self.clock.advance(s["seconds"]),
            "set_time": lambda s: self.clock.set(s["timestamp"]),
            "query": self._query,
        }

    def _fund_accounts(self, balances: dict[str, dict[str, int]], auto_approve: bool) -> None:
        for token_name, accounts in balances.items():
            token = self._token(token_name)
            for account, amount in (accounts or {}).items():
                token.mint(MINTER, account, amount)
                if auto_approve:
                    token.approve(account, self.issuer.address, token.UINT256_MAX)

    def _token(self, name: str) -> ERC20Token:
        try:
            return self.tokens[name]
        except KeyError:
            raise ConfigurationError(
                f"Unknown token '{name}'; expected one of {sorted(self.tokens)}"
            ) from None

    def _stake(self, step: dict[str, Any]) -> dict[str, int]:
        quote: StakeQuote = self.issuer.stake(step["caller"], step["value"])
        return {"normalized": quote.normalized, "bonus": quote.bonus, "granted": quote.granted}

    def _query(self, step: dict[str, Any]) -> dict[str, int]:
        account = step["account"]
        return {
            "total_claim": self.issuer.total_claim(account),
            "currently_unlocked": self.issuer.currently_unlocked(account),
        }

    def run(self) -> ScenarioResult:
        steps = self.scenario.get("steps") or []
        if not isinstance(steps, list):
            raise ConfigurationError("steps must be a list")

        result = ScenarioResult()
        for index, step in enumerate(steps):
            result.steps.append(self._run_step(index, step))

        result.final_state = self.issuer.to_dict()
        result.balances = {
            name: dict(token.balances) for name, token in self.tokens.items()
        }
        result.conservation_ok = self.issuer.check_conservation()

        logger.info(
            "Scenario finished",
            extra={
                "event": "simulation.finished",
                "steps": len(result.steps),
                "failures": len(result.failures),
                "conservation_ok": result.conservation_ok,
            }
        )
        return result

    def _run_step(self, index: int, step: dict[str, Any]) -> StepResult:
        if not isinstance(step, dict) or "op" not in step:
            raise ConfigurationError(f"Step {index} must be a mapping with an 'op' key")

        op = step["op"]
        handler = self._handlers.get(op)
        if handler is None:
            raise ConfigurationError(f"Step {index}: unknown op '{op}'")

        timestamp = self.clock.now
        try:
            value = handler(step)
        except KeyError as exc:
            raise ConfigurationError(f"Step {index} ({op}) is missing field {exc}") from exc
        except ValueError as exc:
            raise ConfigurationError(f"Step {index} ({op}): {exc}") from exc
        except ConfigurationError:
            raise
        except BondError as exc:
            context = get_error_context(exc)
            logger.info(
                "Scenario step rejected",
                extra={"event": "simulation.step_rejected", "index": index, "op": op, **context},
            )
            return StepResult(
                index=index,
                op=op,
                timestamp=timestamp,
                ok=False,
                error_type=context["error_type"],
                error=context["error_message"],
                recoverable=is_recoverable_error(exc),
            )

        return StepResult(index=index, op=op, timestamp=timestamp, ok=True, result=value)
