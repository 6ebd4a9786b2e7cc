from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass

from .debug_log import debug_log
from .errors import OnlineSyncError
from .online.validation import ScenarioValidationCache
from .persistence.settings import Settings


@dataclass(slots=True)
class AdmissionFilter:
    """Decides whether a scenario is tracked while "online-only scenarios" is on.

    Until the user has synced online scores once, every scenario is admitted.
    """

    settings: Callable[[], Settings]
    validation: ScenarioValidationCache
    online_scores: Callable[[], Mapping[str, float]]
    search: Callable[[str], bool]

    def is_scenario_allowed(self, scenario_name: str) -> bool:
        settings = self.settings()
        if not settings.online_only_scenarios:
            return True

        cached = self.validation.get(scenario_name)
        if cached is not None:
            return cached

        if scenario_name in self.online_scores():
            self.validation.insert(scenario_name, True)
            return True

        if not settings.online_scores_synced:
            return True

        try:
            allowed = bool(self.search(scenario_name))
        except OnlineSyncError as exc:
            debug_log("admission_search_failed", scenario=scenario_name, error=str(exc))
            return True
        self.validation.insert(scenario_name, allowed)
        debug_log("admission_verdict", scenario=scenario_name, allowed=allowed)
        return allowed


__all__ = ["AdmissionFilter"]
