"""
Tests for the command-line interface.

Usage:
    pytest tests/test_cli.py -v
"""

import json

import pytest

from src.orchestrator import cli
from src.orchestrator.analytics_service import ReviewAnalyticsService

BUSINESS = "Cafe Nord"


@pytest.fixture
def reviews_file(tmp_path):
    path = tmp_path / "reviews.json"
    path.write_text(json.dumps({
        BUSINESS: [
            {"id": "r1", "stars": 2, "publishedAtDate": "2024-03-01T12:00:00Z", "sentiment": "negative"},
            {"id": "r2", "stars": 3, "publishedAtDate": "2024-03-05T18:30:00Z",
             "responseFromOwnerText": "Sorry about that"},
            {"id": "r3", "stars": 2, "publishedAtDate": "2024-02-10T09:00:00Z", "mainThemes": "service, wait"},
        ]
    }))
    return path


@pytest.fixture(autouse=True)
def quiet_logging(monkeypatch):
    monkeypatch.setattr(cli, "setup_logging", lambda **kwargs: None)


class TestCli:

    def setup_method(self):
        self.service = ReviewAnalyticsService()

    def run(self, *argv):
        return cli.main(list(argv), service=self.service)

    def test_no_command(self):
        assert cli.main([]) == 1

    def test_summary(self, reviews_file, capsys):
        assert self.run("summary", "--reviews", str(reviews_file), "--business", BUSINESS) == 0
        out = capsys.readouterr().out
        assert f"REVIEW SUMMARY: {BUSINESS}" in out
        assert "Reviews: 3" in out
        assert "Health score:" in out

    def test_summary_json(self, reviews_file, capsys):
        assert self.run("summary", "--reviews", str(reviews_file), "--business", BUSINESS, "--json") == 0
        data = json.loads(capsys.readouterr().out)
        assert data["performance_metrics"]["total_reviews"] == 3
        assert data["health_score"] is not None

    def test_alerts_then_ack(self, reviews_file, capsys):
        assert self.run("alerts", "--reviews", str(reviews_file), "--business", BUSINESS, "--json") == 0
        alerts = json.loads(capsys.readouterr().out)
        assert "rating" in {a["type"] for a in alerts}

        assert self.run("ack", "--business", BUSINESS, "--alert-id", alerts[0]["id"]) == 0
        assert self.run("history", "--business", BUSINESS, "--open", "--json") == 0
        capsys.readouterr()

    def test_ack_unknown(self, capsys):
        assert self.run("ack", "--business", BUSINESS, "--alert-id", "alert-missing") == 1
        assert "Unknown alert id" in capsys.readouterr().out

    def test_compare_requires_periods(self, reviews_file, capsys):
        assert self.run("compare", "--reviews", str(reviews_file), "--business", BUSINESS) == 1

    def test_compare_overlap(self, reviews_file, capsys):
        code = self.run(
            "compare", "--reviews", str(reviews_file), "--business", BUSINESS,
            "--current-start", "2024-03-01", "--current-end", "2024-04-01",
            "--previous-start", "2024-02-15", "--previous-end", "2024-03-15",
        )
        assert code == 1
        assert "ERROR" in capsys.readouterr().out

    def test_compare_json(self, reviews_file, capsys):
        code = self.run(
            "compare", "--reviews", str(reviews_file), "--business", BUSINESS, "--json",
            "--current-start", "2024-03-01", "--current-end", "2024-04-01",
            "--previous-start", "2024-02-01", "--previous-end", "2024-03-01",
        )
        assert code == 0
        data = json.loads(capsys.readouterr().out)
        assert data["Custom Comparison"]["review_count"]["current"] == 2
        assert data["Custom Comparison"]["review_count"]["previous"] == 1

    def test_missing_reviews_file(self, tmp_path, capsys):
        code = self.run("summary", "--reviews", str(tmp_path / "missing.json"), "--business", BUSINESS)
        assert code == 1

    def test_rules(self, capsys):
        assert self.run("rules", "--business", BUSINESS) == 0
        rules = json.loads(capsys.readouterr().out)
        assert [r["kind"] for r in rules] == ["threshold", "trend"]
