import math
from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass(frozen=True)
class QualityWeights:
    length: float = 0.20
    structure: float = 0.25
    readability: float = 0.25
    uniqueness: float = 0.15
    formatting: float = 0.15

    def __post_init__(self) -> None:
        values = asdict(self)
        negative = [name for name, value in values.items() if value < 0]
        if negative:
            raise ValueError(f"Quality weights must be non-negative: {negative}")
        total = sum(values.values())
        if not math.isclose(total, 1.0, abs_tol=1e-6):
            raise ValueError(f"Quality weights must sum to 1.0, got {total:.4f}")

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class QualityBreakdown:
    length: float = 0.0
    structure: float = 0.0
    readability: float = 0.0
    uniqueness: float = 0.0
    formatting: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return asdict(self)


@dataclass(frozen=True)
class QualityScore:
    overall: int
    breakdown: QualityBreakdown = field(default_factory=QualityBreakdown)
    indicators: dict[str, float] = field(default_factory=dict)
    recommendations: tuple[str, ...] = ()
    error: str | None = None

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        return {
            "overall": self.overall,
            "breakdown": self.breakdown.as_dict(),
            "indicators": dict(self.indicators),
            "recommendations": list(self.recommendations),
            "error": self.error,
        }
