from __future__ import annotations

"""Likelihood x severity lookup table.

The grid is fixed data. Lookups go through the label position in the two axis
tuples, so an unknown label is an explicit miss instead of a KeyError.
"""

__all__ = [
    "LIKELIHOOD_AXIS",
    "SEVERITY_AXIS",
    "RISK_LEVEL_GRID",
    "risk_level",
]

LIKELIHOOD_AXIS: tuple[str, ...] = ("Almost Certain", "Likely", "Possible", "Unlikely", "Rare")
SEVERITY_AXIS: tuple[str, ...] = ("Catastrophic", "Major", "Moderate", "Minor", "Negligible")

# rows follow LIKELIHOOD_AXIS, columns follow SEVERITY_AXIS
RISK_LEVEL_GRID: tuple[tuple[str, ...], ...] = (
    ("Very high risk", "Very high risk", "High risk", "Medium risk", "Low risk"),
    ("Very high risk", "High risk", "High risk", "Medium risk", "Low risk"),
    ("High risk", "High risk", "Medium risk", "Low risk", "Very low risk"),
    ("Medium risk", "Medium risk", "Low risk", "Low risk", "Very low risk"),
    ("Low risk", "Low risk", "Very low risk", "Very low risk", "No risk"),
)

_LIKELIHOOD_INDEX = {label: i for i, label in enumerate(LIKELIHOOD_AXIS)}
_SEVERITY_INDEX = {label: i for i, label in enumerate(SEVERITY_AXIS)}


def risk_level(likelihood: str | None, severity: str | None) -> str | None:
    """Return the matrix label for the pair, or None when either side misses."""
    if not likelihood or not severity:
        return None
    row = _LIKELIHOOD_INDEX.get(likelihood)
    col = _SEVERITY_INDEX.get(severity)
    if row is None or col is None:
        return None
    return RISK_LEVEL_GRID[row][col]
