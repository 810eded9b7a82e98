"""
Alert Persistence
=================

Per-business storage of alert history and notification rules.

The alert engine owns one store instance (injected), so separate engines
never share state. Stores only need read / append / update-by-id.

State file format (JsonFileAlertStore):
    {
      "version": 1,
      "businesses": {
        "Cafe Nord": {"alerts": [...], "rules": [...]}
      }
    }

Usage:
    store = JsonFileAlertStore(Path("data/alerts.json"))
    engine = AlertEngine(store=store)
"""

import json
import logging
import os
import tempfile
import threading
from abc import ABC, abstractmethod
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from ..analytics.serialization import from_jsonable, to_jsonable
from ..core.errors import ConfigError
from .alert_models import AnalysisAlert, NotificationRule

logger = logging.getLogger(__name__)

STORE_VERSION = 1


class AlertStore(ABC):
    """Key-value store keyed by business name."""

    @abstractmethod
    def load_history(self, business_name: str) -> List[AnalysisAlert]:
        """Alerts of a business, oldest first. Returned objects are copies."""

    @abstractmethod
    def append_alert(self, business_name: str, alert: AnalysisAlert) -> None:
        ...

    @abstractmethod
    def update_alert(self, business_name: str, alert: AnalysisAlert) -> bool:
        """Replace the stored alert with the same id. False if unknown."""

    @abstractmethod
    def load_rules(self, business_name: str) -> Optional[List[NotificationRule]]:
        """Configured rules, or None when the business has none."""

    @abstractmethod
    def save_rules(self, business_name: str, rules: List[NotificationRule]) -> None:
        ...

    def businesses(self) -> List[str]:
        return []


class InMemoryAlertStore(AlertStore):
    """Process-local store; the default for tests and one-shot runs."""

    def __init__(self):
        self._alerts: Dict[str, List[AnalysisAlert]] = {}
        self._rules: Dict[str, List[NotificationRule]] = {}
        self._lock = threading.Lock()

    def load_history(self, business_name):
        with self._lock:
            return deepcopy(self._alerts.get(business_name, []))

    def append_alert(self, business_name, alert):
        with self._lock:
            self._alerts.setdefault(business_name, []).append(deepcopy(alert))

    def update_alert(self, business_name, alert):
        with self._lock:
            history = self._alerts.get(business_name, [])
            for i, stored in enumerate(history):
                if stored.id == alert.id:
                    history[i] = deepcopy(alert)
                    return True
            return False

    def load_rules(self, business_name):
        with self._lock:
            rules = self._rules.get(business_name)
            return deepcopy(rules) if rules is not None else None

    def save_rules(self, business_name, rules):
        with self._lock:
            self._rules[business_name] = deepcopy(list(rules))

    def businesses(self):
        with self._lock:
            return sorted(set(self._alerts) | set(self._rules))


class JsonFileAlertStore(AlertStore):
    """
    Store backed by a single JSON document.

    Every write rewrites the whole file atomically (temp file + rename).
    Records are validated through pydantic on load; a corrupt file is a
    configuration error rather than silently discarded history.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._lock = threading.RLock()
        self._state: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"version": STORE_VERSION, "businesses": {}}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigError(f"Cannot read alert store {self.path}: {e}")

        businesses = {}
        try:
            for name, entry in data.get("businesses", {}).items():
                rules = entry.get("rules")
                businesses[name] = {
                    "alerts": from_jsonable(List[AnalysisAlert], entry.get("alerts", [])),
                    "rules": from_jsonable(List[NotificationRule], rules) if rules is not None else None,
                }
        except ValidationError as e:
            raise ConfigError(f"Invalid alert store {self.path}: {e}")

        logger.info(f"Loaded alert store for {len(businesses)} businesses from {self.path}")
        return {"version": data.get("version", STORE_VERSION), "businesses": businesses}

    def _save(self) -> None:
        businesses = {}
        for name, entry in self._state["businesses"].items():
            rules = entry["rules"]
            businesses[name] = {
                "alerts": to_jsonable(entry["alerts"], List[AnalysisAlert]),
                "rules": to_jsonable(rules, List[NotificationRule]) if rules is not None else None,
            }
        document = {"version": STORE_VERSION, "businesses": businesses}
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=str(self.path.parent), prefix=".alerts-", suffix=".json")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(document, f, indent=2)
            os.replace(tmp_path, self.path)
        except OSError:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise

    def _entry(self, business_name: str) -> Dict[str, Any]:
        return self._state["businesses"].setdefault(business_name, {"alerts": [], "rules": None})

    def load_history(self, business_name):
        with self._lock:
            entry = self._state["businesses"].get(business_name)
            return deepcopy(entry["alerts"]) if entry else []

    def append_alert(self, business_name, alert):
        with self._lock:
            self._entry(business_name)["alerts"].append(deepcopy(alert))
            self._save()

    def update_alert(self, business_name, alert):
        with self._lock:
            entry = self._state["businesses"].get(business_name)
            if not entry:
                return False
            for i, stored in enumerate(entry["alerts"]):
                if stored.id == alert.id:
                    entry["alerts"][i] = deepcopy(alert)
                    self._save()
                    return True
            return False

    def load_rules(self, business_name):
        with self._lock:
            entry = self._state["businesses"].get(business_name)
            if not entry or entry["rules"] is None:
                return None
            return deepcopy(entry["rules"])

    def save_rules(self, business_name, rules):
        with self._lock:
            self._entry(business_name)["rules"] = deepcopy(list(rules))
            self._save()

    def businesses(self):
        with self._lock:
            return sorted(self._state["businesses"])
