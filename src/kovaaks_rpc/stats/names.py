from __future__ import annotations

CHALLENGE_SUFFIX = " - Challenge"
UNKNOWN_SCENARIO = "Unknown Scenario"


def normalize_scenario_name(name: str) -> str:
    """Fold the challenge variant of a scenario into its base name."""
    normalized = str(name)
    while normalized.endswith(CHALLENGE_SUFFIX):
        normalized = normalized[: -len(CHALLENGE_SUFFIX)]
    return normalized


def is_known_scenario(name: str) -> bool:
    return bool(name) and name != UNKNOWN_SCENARIO


__all__ = [
    "CHALLENGE_SUFFIX",
    "UNKNOWN_SCENARIO",
    "is_known_scenario",
    "normalize_scenario_name",
]
