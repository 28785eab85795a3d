"""In-process counters for cleaning and scoring runs.

One aggregator is created by the composition root and handed to the rule
engine and the quality scorer. Updates come from worker threads, so every
mutation goes through a single lock.
"""

import threading
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Mapping

from src.config.logger_config import logger


@dataclass
class HostnameStats:
    hostname: str
    operations: int = 0
    errors: int = 0
    total_reduction: float = 0.0
    total_duration_ms: float = 0.0
    scorings: int = 0
    total_quality: float = 0.0
    scoring_errors: int = 0

    @property
    def cleanings(self) -> int:
        return self.operations - self.errors

    @property
    def average_reduction(self) -> float:
        return self.total_reduction / self.cleanings if self.cleanings else 0.0

    @property
    def average_duration_ms(self) -> float:
        return self.total_duration_ms / self.operations if self.operations else 0.0

    @property
    def error_rate(self) -> float:
        return self.errors / self.operations if self.operations else 0.0

    @property
    def average_quality(self) -> float:
        return self.total_quality / self.scorings if self.scorings else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "hostname": self.hostname,
            "operations": self.operations,
            "cleanings": self.cleanings,
            "errors": self.errors,
            "error_rate": round(self.error_rate, 4),
            "average_reduction": round(self.average_reduction, 2),
            "average_duration_ms": round(self.average_duration_ms, 2),
            "scorings": self.scorings,
            "scoring_errors": self.scoring_errors,
            "average_quality": round(self.average_quality, 2),
        }


@dataclass
class RuleStats:
    rule: str
    applications: int = 0
    removed_elements: int = 0
    total_reduction: float = 0.0

    @property
    def average_reduction(self) -> float:
        return self.total_reduction / self.applications if self.applications else 0.0

    def to_dict(self) -> dict[str, Any]:
        return {
            "rule": self.rule,
            "applications": self.applications,
            "removed_elements": self.removed_elements,
            "average_reduction": round(self.average_reduction, 2),
        }


class MetricsAggregator:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._hosts: dict[str, HostnameStats] = {}
        self._rules: dict[str, RuleStats] = {}
        self._started_at = datetime.now(timezone.utc)

    def _host(self, hostname: str) -> HostnameStats:
        key = hostname or "unknown"
        stats = self._hosts.get(key)
        if stats is None:
            stats = HostnameStats(hostname=key)
            self._hosts[key] = stats
        return stats

    def record_cleaning(
        self,
        hostname: str,
        *,
        reduction_percent: float,
        duration_ms: float,
        rule_reductions: Mapping[str, float] | None = None,
        removed_elements: Mapping[str, int] | None = None,
    ) -> None:
        with self._lock:
            stats = self._host(hostname)
            stats.operations += 1
            stats.total_reduction += reduction_percent
            stats.total_duration_ms += duration_ms
            for rule, reduction in (rule_reductions or {}).items():
                rule_stats = self._rules.get(rule)
                if rule_stats is None:
                    rule_stats = RuleStats(rule=rule)
                    self._rules[rule] = rule_stats
                rule_stats.applications += 1
                rule_stats.total_reduction += reduction
                rule_stats.removed_elements += (removed_elements or {}).get(rule, 0)

    def record_error(self, hostname: str, error: str, duration_ms: float = 0.0) -> None:
        with self._lock:
            stats = self._host(hostname)
            stats.operations += 1
            stats.errors += 1
            stats.total_duration_ms += duration_ms
        logger.debug("Recorded cleaning error for {}: {}", hostname or "unknown", error)

    def record_scoring(self, hostname: str, overall: int, duration_ms: float, error: bool = False) -> None:
        with self._lock:
            stats = self._host(hostname)
            stats.scorings += 1
            stats.total_quality += overall
            if error:
                stats.scoring_errors += 1

    def hostname_stats(self, hostname: str) -> dict[str, Any] | None:
        with self._lock:
            stats = self._hosts.get(hostname)
            return stats.to_dict() if stats is not None else None

    def summary(self) -> dict[str, Any]:
        with self._lock:
            operations = sum(stats.operations for stats in self._hosts.values())
            errors = sum(stats.errors for stats in self._hosts.values())
            cleanings = operations - errors
            total_reduction = sum(stats.total_reduction for stats in self._hosts.values())
            total_duration = sum(stats.total_duration_ms for stats in self._hosts.values())
            scorings = sum(stats.scorings for stats in self._hosts.values())
            total_quality = sum(stats.total_quality for stats in self._hosts.values())
            return {
                "total_operations": operations,
                "successful_cleanings": cleanings,
                "errors": errors,
                "success_rate": round(cleanings / operations * 100, 2) if operations else 0.0,
                "average_reduction": round(total_reduction / cleanings, 2) if cleanings else 0.0,
                "average_cleaning_time_ms": round(total_duration / operations, 2) if operations else 0.0,
                "scorings": scorings,
                "average_quality": round(total_quality / scorings, 2) if scorings else 0.0,
                "unique_hostnames": len(self._hosts),
                "active_rules": len(self._rules),
            }

    def problematic_hostnames(self, limit: int = 10) -> list[dict[str, Any]]:
        with self._lock:
            ranked = sorted(
                (stats for stats in self._hosts.values() if stats.operations),
                key=lambda stats: (-stats.error_rate, stats.average_reduction, stats.hostname),
            )
            return [stats.to_dict() for stats in ranked[:limit]]

    def most_effective_rules(self, limit: int = 10) -> list[dict[str, Any]]:
        with self._lock:
            ranked = sorted(
                self._rules.values(),
                key=lambda stats: (-stats.average_reduction, -stats.applications, stats.rule),
            )
            return [stats.to_dict() for stats in ranked[:limit]]

    def export(self) -> dict[str, Any]:
        summary = self.summary()
        with self._lock:
            return {
                "started_at": self._started_at.isoformat(),
                "exported_at": datetime.now(timezone.utc).isoformat(),
                "summary": summary,
                "hostnames": {name: stats.to_dict() for name, stats in sorted(self._hosts.items())},
                "rules": {name: stats.to_dict() for name, stats in sorted(self._rules.items())},
            }

    def reset(self) -> None:
        with self._lock:
            self._hosts.clear()
            self._rules.clear()
            self._started_at = datetime.now(timezone.utc)

    def log_summary(self) -> None:
        summary = self.summary()
        logger.info(
            "Cleaning metrics: operations={}, success_rate={}%, average_reduction={}%, average_time={}ms, hostnames={}, rules={}",
            summary["total_operations"],
            summary["success_rate"],
            summary["average_reduction"],
            summary["average_cleaning_time_ms"],
            summary["unique_hostnames"],
            summary["active_rules"],
        )
        for stats in self.problematic_hostnames(limit=3):
            if stats["errors"]:
                logger.warning("Hostname with cleaning errors: {} ({} of {})", stats["hostname"], stats["errors"], stats["operations"])
