import json
import shutil
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from vestbond.cli.main import cli
from vestbond.core.config import DEFAULT_CONFIG_DIR

QUIET = ["--log-level", "CRITICAL"]
WINDOW = 62_899_200


def _prepare_config_dir(tmp_path: Path) -> Path:
    """Copy the packaged config directory to a temp path for isolated editing."""
    target = tmp_path / "config"
    shutil.copytree(DEFAULT_CONFIG_DIR, target)
    return target


def _write_scenario(tmp_path: Path, steps, name="scenario.yaml") -> Path:
    scenario = {
        "start_time": 1_700_000_000,
        "owner": "treasury",
        "balances": {
            "reward": {"treasury": 10**21},
            "reference": {"alice": 5 * 10**18},
        },
        "steps": steps,
    }
    path = tmp_path / name
    path.write_text(yaml.safe_dump(scenario))
    return path


@pytest.fixture
def runner():
    return CliRunner()


class TestConfigCommands:
    def test_show_section_json(self, runner, tmp_path):
        config_dir = _prepare_config_dir(tmp_path)
        result = runner.invoke(
            cli,
            QUIET + [
                "--json-output",
                "--environment", "development",
                "--config-dir", str(config_dir),
                "config", "show", "--section", "issuer",
            ],
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["section"] == "issuer"
        assert payload["config"]["maturation_window"] == WINDOW
        assert payload["config"]["bonus_min"] == 5

    def test_show_key(self, runner):
        result = runner.invoke(cli, QUIET + ["config", "show", "--key", "issuer.bonus_max", "--format", "json"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload == {"key": "issuer.bonus_max", "value": 25, "environment": "development"}

    def test_show_unknown_key(self, runner):
        result = runner.invoke(cli, QUIET + ["config", "show", "--key", "issuer.nope"])
        assert result.exit_code != 0
        assert "Unknown configuration key" in result.output

    def test_environment_variable_override(self, runner):
        result = runner.invoke(
            cli,
            QUIET + ["--json-output", "config", "show"],
            env={"VESTBOND_ISSUER_BONUS_MAX": "40"},
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["issuer"]["bonus_max"] == 40

    def test_show_yaml(self, runner):
        result = runner.invoke(cli, QUIET + ["config", "show", "--section", "logging", "--format", "yaml"])
        assert result.exit_code == 0, result.output
        assert yaml.safe_load(result.output)["config"]["level"] == "CRITICAL"

    def test_show_table(self, runner):
        result = runner.invoke(cli, QUIET + ["config", "show"])
        assert result.exit_code == 0, result.output
        assert "issuer.bonus_max" in result.output

    def test_invalid_config_is_reported(self, runner, tmp_path):
        config_dir = _prepare_config_dir(tmp_path)
        (config_dir / "development.yaml").write_text(yaml.safe_dump({"issuer": {"bonus_min": 99}}))

        result = runner.invoke(cli, QUIET + ["--config-dir", str(config_dir), "config", "show"])

        assert result.exit_code != 0
        assert "bonus range" in result.output


class TestBonusAndQuote:
    def test_bonus_ramp_json(self, runner):
        result = runner.invoke(cli, QUIET + ["--json-output", "bonus", "--points", "5"])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert [point["bonus"] for point in payload["points"]] == [5, 10, 15, 20, 25]
        assert payload["points"][-1]["elapsed"] == 4_838_400

    def test_bonus_custom_range_table(self, runner):
        result = runner.invoke(cli, QUIET + ["bonus", "--min", "0", "--max", "100", "--points", "3"])
        assert result.exit_code == 0, result.output
        assert "Bonus ramp" in result.output
        assert "50" in result.output

    def test_bonus_invalid_range(self, runner):
        result = runner.invoke(cli, QUIET + ["bonus", "--min", "30", "--max", "10"])
        assert result.exit_code != 0

    def test_quote_reference_deposit(self, runner):
        result = runner.invoke(cli, QUIET + ["--json-output", "quote", str(10**18)])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["normalized"] == 10**17
        assert payload["bonus"] == 5
        assert payload["granted"] == 105 * 10**15

    def test_quote_after_full_ramp(self, runner):
        result = runner.invoke(
            cli,
            QUIET + ["--json-output", "quote", str(10**18), "--elapsed", "4838400", "--ratio", "5/1"],
        )
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["bonus"] == 25
        assert payload["granted"] == 25 * 10**16
        assert payload["accepted"] is True
        assert payload["rejection"] is None

    @pytest.mark.parametrize(
        "value, reason",
        [
            ("10", "Deposit too small"),
            (str(10**29), "exceeds the maximum"),
        ],
    )
    def test_quote_flags_deposits_stake_would_refuse(self, runner, value, reason):
        result = runner.invoke(cli, QUIET + ["--json-output", "quote", value])
        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["accepted"] is False
        assert reason in payload["rejection"]

    def test_quote_panel(self, runner):
        result = runner.invoke(cli, QUIET + ["quote", "1000"])
        assert result.exit_code == 0, result.output
        assert "Stake quote" in result.output
        assert "Accepted" in result.output

    @pytest.mark.parametrize("ratio", ["ten", "0/1"])
    def test_quote_bad_ratio(self, runner, ratio):
        result = runner.invoke(cli, QUIET + ["quote", "1000", "--ratio", ratio])
        assert result.exit_code != 0


class TestSimulate:
    def test_simulate_json(self, runner, tmp_path):
        path = _write_scenario(tmp_path, [
            {"op": "add_reserve", "caller": "treasury", "amount": 10**21},
            {"op": "stake", "caller": "alice", "value": 10**18},
            {"op": "advance", "seconds": WINDOW},
            {"op": "withdraw", "caller": "alice"},
        ])

        result = runner.invoke(cli, QUIET + ["--json-output", "simulate", str(path)])

        assert result.exit_code == 0, result.output
        payload = json.loads(result.output)
        assert payload["conservation_ok"] is True
        assert all(step["ok"] for step in payload["steps"])
        assert payload["steps"][3]["result"] == 105 * 10**15
        assert payload["balances"]["reward"]["alice"] == 105 * 10**15

    def test_simulate_table(self, runner, tmp_path):
        path = _write_scenario(tmp_path, [
            {"op": "stake", "caller": "alice", "value": 10**18},
        ])

        result = runner.invoke(cli, QUIET + ["simulate", str(path)])

        assert result.exit_code == 0, result.output
        assert "NotAvailableError" in result.output
        assert "Final state" in result.output

    def test_simulate_strict_fails_on_rejection(self, runner, tmp_path):
        path = _write_scenario(tmp_path, [
            {"op": "withdraw", "caller": "alice"},
        ])

        result = runner.invoke(cli, QUIET + ["--json-output", "simulate", "--strict", str(path)])

        assert result.exit_code == 1

    def test_simulate_malformed_scenario(self, runner, tmp_path):
        path = _write_scenario(tmp_path, [{"op": "explode"}])

        result = runner.invoke(cli, QUIET + ["simulate", str(path)])

        assert result.exit_code != 0
        assert "unknown op" in result.output
