"""
Integration tests for the command-line interface.
"""
import pytest
from click.testing import CliRunner

from main import cli


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


@pytest.mark.integration
class TestCLI:

    def test_cost(self, runner, seeded_tracker, test_config):
        result = runner.invoke(cli, ["--db", str(test_config.db_path), "cost", "P1"], obj={})
        assert result.exit_code == 0, result.output
        assert "157,000.00" in result.output

    def test_cost_unknown_project(self, runner, seeded_tracker, test_config):
        result = runner.invoke(cli, ["--db", str(test_config.db_path), "cost", "NOPE"], obj={})
        assert result.exit_code == 1
        assert "No BOM found" in result.output

    def test_check(self, runner, seeded_tracker, test_config):
        result = runner.invoke(cli, ["--db", str(test_config.db_path), "check", "--skip-llm"], obj={})
        assert result.exit_code == 0, result.output
        assert "Company settings: ✓" in result.output

    def test_vendor_import_reports_bad_rows(self, runner, seeded_tracker, test_config, temp_dir):
        csv_path = temp_dir / "vendors.csv"
        csv_path.write_text("Company,Email\nBasler India,sales@basler.example\n,bad\n", encoding="utf-8")

        result = runner.invoke(cli, ["--db", str(test_config.db_path), "vendors", "import", str(csv_path)], obj={})

        assert result.exit_code == 1
        assert "Line 3: Company is required" in result.output
        assert seeded_tracker.repo.list_vendors() == []

    def test_po_send(self, runner, seeded_tracker, test_config, po_input):
        po = seeded_tracker.create_purchase_order(po_input())

        result = runner.invoke(
            cli, ["--db", str(test_config.db_path), "po", "send", "P1", po.id, "--by", "bob"], obj={},
        )

        assert result.exit_code == 0, result.output
        assert f"Sent {po.po_number} (2 BOM item(s) marked ordered)" in result.output
        listed = runner.invoke(cli, ["--db", str(test_config.db_path), "po", "list", "P1"], obj={})
        assert "sent" in listed.output

    def test_serve_runs_dashboard_on_selected_db(self, runner, seeded_tracker, test_config, monkeypatch):
        import dashboard.app as dashboard_app
        import main

        calls = []
        monkeypatch.setattr(dashboard_app, "_tracker", None)
        monkeypatch.setattr(main.uvicorn, "run", lambda app, **kwargs: calls.append((app, kwargs)))

        result = runner.invoke(
            cli, ["--db", str(test_config.db_path), "serve", "--port", "8123"], obj={},
        )

        assert result.exit_code == 0, result.output
        assert calls == [(dashboard_app.app, {"host": "127.0.0.1", "port": 8123})]
        assert dashboard_app.get_tracker().get_bom_cost("P1") == 157000
