from dataclasses import dataclass, field
from typing import Any, Literal

RemovalOutcome = Literal["removed", "preserved"]


@dataclass(frozen=True)
class RemovalRecord:
    selector: str
    rule: str
    outcome: RemovalOutcome
    reason: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "selector": self.selector,
            "rule": self.rule,
            "outcome": self.outcome,
            "reason": self.reason,
        }


@dataclass
class CleaningReport:
    original_element_count: int = 0
    final_element_count: int = 0
    original_size: int = 0
    cleaned_size: int = 0
    duration_ms: float = 0.0
    removals: list[RemovalRecord] = field(default_factory=list)
    applied_rules: list[str] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    removed_by_rule: dict[str, int] = field(default_factory=dict)

    @property
    def reduction_percent(self) -> int:
        if self.original_element_count <= 0:
            return 0
        removed = self.original_element_count - self.final_element_count
        return round(removed / self.original_element_count * 100)

    @property
    def removed_count(self) -> int:
        return sum(1 for record in self.removals if record.outcome == "removed")

    @property
    def preserved_count(self) -> int:
        return sum(1 for record in self.removals if record.outcome == "preserved")

    def rule_reduction_percent(self, rule_name: str) -> float:
        if self.original_element_count <= 0:
            return 0.0
        return self.removed_by_rule.get(rule_name, 0) / self.original_element_count * 100

    def record(self, selector: str, rule: str, outcome: RemovalOutcome, reason: str | None = None) -> None:
        self.removals.append(RemovalRecord(selector=selector, rule=rule, outcome=outcome, reason=reason))

    def count_removed(self, rule: str, elements: int) -> None:
        if elements <= 0:
            return
        self.removed_by_rule[rule] = self.removed_by_rule.get(rule, 0) + elements

    def to_dict(self) -> dict[str, Any]:
        return {
            "original_element_count": self.original_element_count,
            "final_element_count": self.final_element_count,
            "original_size": self.original_size,
            "cleaned_size": self.cleaned_size,
            "reduction_percent": self.reduction_percent,
            "duration_ms": round(self.duration_ms, 2),
            "applied_rules": list(self.applied_rules),
            "errors": list(self.errors),
            "removed_by_rule": dict(self.removed_by_rule),
            "removed_count": self.removed_count,
            "preserved_count": self.preserved_count,
            "removals": [record.to_dict() for record in self.removals],
        }


@dataclass(frozen=True)
class CleaningResult:
    html: str
    report: CleaningReport
    success: bool = True
    error: str | None = None


@dataclass(frozen=True)
class NormalizedContent:
    text: str
    steps: tuple[str, ...] = ()
    success: bool = True
    error: str | None = None
    original_length: int = 0
    final_length: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "text": self.text,
            "steps": list(self.steps),
            "success": self.success,
            "error": self.error,
            "original_length": self.original_length,
            "final_length": self.final_length,
        }
