"""Tests for CLI commands."""

import json

import pytest
from typer.testing import CliRunner

from chainledger.cli import app
from conftest import OTHER, WALLET

runner = CliRunner()


@pytest.fixture
def bundle_path(tmp_path):
    bundle = {
        "source": "kaspa",
        "wallet": WALLET,
        "categories": {
            "transactions": [
                {
                    "id": "send",
                    "timestamp": "2024-03-01T10:00:00Z",
                    "inputs": [{"address": WALLET, "amount": "10"}],
                    "outputs": [{"address": OTHER, "amount": "9.5"}],
                },
                {
                    "id": "mined",
                    "timestamp": "2024-03-02T10:00:00Z",
                    "inputs": [],
                    "outputs": [{"address": WALLET, "amount": "5"}],
                },
            ],
        },
        "prices": {"2024-03-01": "0.12", "2024-03-02": "0.13"},
    }
    path = tmp_path / "kaspa.json"
    path.write_text(json.dumps(bundle))
    return path


class TestCLI:
    def test_help(self):
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "chainledger" in result.output

    def test_reconcile_help(self):
        result = runner.invoke(app, ["reconcile", "--help"])
        assert result.exit_code == 0

    def test_sources(self):
        result = runner.invoke(app, ["sources"])
        assert result.exit_code == 0
        assert "kaspa" in result.output
        assert "bittensor" in result.output

    def test_reconcile_json(self, bundle_path, tmp_path):
        out = tmp_path / "ledger.json"
        result = runner.invoke(app, ["reconcile", str(bundle_path), "--format", "json", "--output", str(out)])
        assert result.exit_code == 0
        assert "Wrote 2 records" in result.output
        data = json.loads(out.read_text())
        assert data["status"] == "COMPLETE"
        assert [tx["id"] for tx in data["transactions"]] == ["kaspa:send", "kaspa:mined"]
        assert data["transactions"][0]["fiat_price"] == "0.12"

    def test_reconcile_csv(self, bundle_path, tmp_path):
        out = tmp_path / "ledger.csv"
        result = runner.invoke(app, ["reconcile", str(bundle_path), "-f", "csv", "-o", str(out)])
        assert result.exit_code == 0
        lines = out.read_text().splitlines()
        assert lines[0].startswith("Date,Received Quantity,Received Currency")
        assert len(lines) == 3
        assert lines[1].startswith("03/01/2024 10:00:00,,,,10,KAS,1.20,0.5,KAS")

    def test_reconcile_date_range(self, bundle_path, tmp_path):
        out = tmp_path / "ledger.json"
        result = runner.invoke(app, [
            "reconcile", str(bundle_path), "-f", "json", "-o", str(out),
            "--start", "2024-03-02", "--end", "2024-03-02",
        ])
        assert result.exit_code == 0
        data = json.loads(out.read_text())
        assert [tx["id"] for tx in data["transactions"]] == ["kaspa:mined"]

    def test_reconcile_table(self, bundle_path):
        result = runner.invoke(app, ["reconcile", str(bundle_path)])
        assert result.exit_code == 0
        assert "LEDGER SUMMARY" in result.output
        assert "Status: COMPLETE" in result.output

    def test_unknown_wallet_fails(self, bundle_path):
        result = runner.invoke(app, ["reconcile", str(bundle_path), "--wallet", "kaspa:qrsomeoneelse"])
        assert result.exit_code == 1
        assert "Status: FAILED" in result.output

    def test_bad_format(self, bundle_path):
        result = runner.invoke(app, ["reconcile", str(bundle_path), "--format", "xml"])
        assert result.exit_code == 1

    def test_bad_date(self, bundle_path):
        result = runner.invoke(app, ["reconcile", str(bundle_path), "--start", "03/01/2024"])
        assert result.exit_code == 1

    def test_start_after_end(self, bundle_path):
        result = runner.invoke(app, ["reconcile", str(bundle_path), "--start", "2024-03-05", "--end", "2024-03-01"])
        assert result.exit_code == 1

    def test_missing_bundle(self, tmp_path):
        result = runner.invoke(app, ["reconcile", str(tmp_path / "missing.json")])
        assert result.exit_code == 1

    def test_unknown_source(self, bundle_path):
        result = runner.invoke(app, ["reconcile", str(bundle_path), "--source", "dogecoin"])
        assert result.exit_code == 1

    def test_strict_unknown_wallet_raises(self, bundle_path):
        result = runner.invoke(app, ["reconcile", str(bundle_path), "--wallet", "kaspa:qrsomeoneelse", "--strict"])
        assert result.exit_code == 1
        assert "Status: FAILED" not in result.output

    def test_timeout_option(self, bundle_path):
        result = runner.invoke(app, ["reconcile", str(bundle_path), "--timeout", "30"])
        assert result.exit_code == 0
        assert "Status: COMPLETE" in result.output
