"""Confidence scoring for detected login forms."""

from typing import Iterable, Optional

from ..models import DetectionMethod, FormElements

TIER_WEIGHTS = {
    DetectionMethod.URL_SPECIFIC: 100,
    DetectionMethod.COMMON_ATTRIBUTES: 85,
    DetectionMethod.STRUCTURAL: 70,
    DetectionMethod.NESTED_CONTEXT: 60,
    DetectionMethod.PROGRESSIVE: 70,
}

BASE_EXPECTED_FIELDS = ("username", "password", "submit")


def expected_fields(expect_domain: bool = False) -> tuple:
    return BASE_EXPECTED_FIELDS + (("domain",) if expect_domain else ())


def clamp(value: float, low: int = 0, high: int = 100) -> int:
    return int(max(low, min(high, round(value))))


def score(elements: Optional[FormElements], expected: Iterable[str] = BASE_EXPECTED_FIELDS) -> int:
    """
    mean tier weight of the found fields x (0.7 + 0.3 x completeness)

    Completeness is the fraction of `expected` fields present. A result with
    no fields scores 0.
    """
    if elements is None:
        return 0
    found = elements.found_fields()
    if not found:
        return 0
    weights = [
        TIER_WEIGHTS.get(elements.field_methods.get(name) or elements.method, 0)
        for name in found
    ]
    mean_weight = sum(weights) / len(weights)
    expected = list(expected)
    completeness = (
        sum(1 for name in expected if elements.get(name) is not None) / len(expected)
        if expected else 1.0
    )
    return clamp(mean_weight * (0.7 + 0.3 * completeness))
