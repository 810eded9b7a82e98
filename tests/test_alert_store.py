"""
Tests for the alert stores.

Usage:
    pytest tests/test_alert_store.py -v
"""

import json

import pytest

from src.alerts.alert_models import (
    ActionType,
    AlertSeverity,
    AnalysisAlert,
    NotificationAction,
    NotificationRule,
    RuleKind,
)
from src.alerts.alert_store import InMemoryAlertStore, JsonFileAlertStore
from src.core.errors import ConfigError


def make_alert(alert_type="rating", severity=AlertSeverity.CRITICAL, business="Cafe Nord") -> AnalysisAlert:
    return AnalysisAlert(
        id=AnalysisAlert.new_id(),
        business_name=business,
        type=alert_type,
        kind=RuleKind.THRESHOLD,
        severity=severity,
        title="Critical Rating Alert",
        message="Rating is 2.8",
        payload={"value": 2.8, "threshold": 3.0},
    )


class TestInMemoryAlertStore:

    def setup_method(self):
        self.store = InMemoryAlertStore()

    def test_append_and_load(self):
        alert = make_alert()
        self.store.append_alert("Cafe Nord", alert)

        history = self.store.load_history("Cafe Nord")
        assert [a.id for a in history] == [alert.id]
        assert self.store.load_history("Bistro Sud") == []

    def test_returns_copies(self):
        alert = make_alert()
        self.store.append_alert("Cafe Nord", alert)
        alert.acknowledged = True

        loaded = self.store.load_history("Cafe Nord")[0]
        assert loaded.acknowledged is False
        loaded.acknowledged = True
        assert self.store.load_history("Cafe Nord")[0].acknowledged is False

    def test_update(self):
        alert = make_alert()
        self.store.append_alert("Cafe Nord", alert)
        alert.acknowledge()

        assert self.store.update_alert("Cafe Nord", alert) is True
        assert self.store.load_history("Cafe Nord")[0].acknowledged is True
        assert self.store.update_alert("Cafe Nord", make_alert()) is False

    def test_rules(self):
        assert self.store.load_rules("Cafe Nord") is None
        self.store.save_rules("Cafe Nord", [])
        assert self.store.load_rules("Cafe Nord") == []
        assert self.store.businesses() == ["Cafe Nord"]


class TestJsonFileAlertStore:

    def test_persists_across_instances(self, tmp_path):
        path = tmp_path / "alerts.json"
        store = JsonFileAlertStore(path)
        alert = make_alert()
        store.append_alert("Cafe Nord", alert)
        alert.acknowledge()
        store.update_alert("Cafe Nord", alert)
        rule = NotificationRule(
            id="hook",
            kind=RuleKind.TREND,
            actions=[NotificationAction(type=ActionType.WEBHOOK, webhook_url="https://hooks.example.com/x")],
            severities=[AlertSeverity.HIGH],
        )
        store.save_rules("Cafe Nord", [rule])

        reloaded = JsonFileAlertStore(path)
        history = reloaded.load_history("Cafe Nord")
        assert len(history) == 1
        assert history[0].id == alert.id
        assert history[0].acknowledged is True
        assert history[0].severity == AlertSeverity.CRITICAL
        assert history[0].payload == {"value": 2.8, "threshold": 3.0}
        assert history[0].triggered_at == alert.triggered_at

        rules = reloaded.load_rules("Cafe Nord")
        assert rules[0].id == "hook"
        assert rules[0].actions[0].type == ActionType.WEBHOOK
        assert rules[0].severities == [AlertSeverity.HIGH]

    def test_file_format(self, tmp_path):
        path = tmp_path / "alerts.json"
        JsonFileAlertStore(path).append_alert("Cafe Nord", make_alert())

        document = json.loads(path.read_text())
        assert document["version"] == 1
        entry = document["businesses"]["Cafe Nord"]
        assert entry["rules"] is None
        assert entry["alerts"][0]["severity"] == "critical"

    def test_missing_file_starts_empty(self, tmp_path):
        store = JsonFileAlertStore(tmp_path / "nested" / "alerts.json")
        assert store.businesses() == []
        store.append_alert("Cafe Nord", make_alert())
        assert (tmp_path / "nested" / "alerts.json").exists()

    def test_rules_none_until_saved(self, tmp_path):
        store = JsonFileAlertStore(tmp_path / "alerts.json")
        store.append_alert("Cafe Nord", make_alert())
        assert store.load_rules("Cafe Nord") is None

    def test_corrupt_file(self, tmp_path):
        path = tmp_path / "alerts.json"
        path.write_text("{broken")
        with pytest.raises(ConfigError):
            JsonFileAlertStore(path)

    def test_invalid_records(self, tmp_path):
        path = tmp_path / "alerts.json"
        path.write_text(json.dumps({
            "version": 1,
            "businesses": {"Cafe Nord": {"alerts": [{"id": "x", "severity": "apocalyptic"}]}},
        }))
        with pytest.raises(ConfigError):
            JsonFileAlertStore(path)
