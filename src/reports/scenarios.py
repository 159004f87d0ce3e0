"""
Scenario resolution.

Picks the scenarios a report is built from, first match wins:
1. ``scenarioData.primary`` in the request body (with its comparisons)
2. the first ``legacyScenarios`` entry in the request body
3. the user's stored primary scenario, with their stored comparisons
4. the user's most recent stored legacy scenario
"""

import logging
from typing import Optional

from reports.errors import ScenarioNotFound
from reports.models import ReportRequest, Scenario, ScenarioBundle
from reports.persistence import ReportStore

logger = logging.getLogger(__name__)


def _owned_by(scenario: Scenario, user_id: str) -> Scenario:
    if scenario.user_id:
        return scenario
    return scenario.model_copy(update={"user_id": user_id})


class ScenarioResolver:

    def __init__(self, store: ReportStore):
        self.store = store

    async def resolve(self, user_id: str, request: Optional[ReportRequest] = None) -> ScenarioBundle:
        """
        Resolve the scenario bundle for one report.

        Raises:
            ScenarioNotFound: nothing in the body and nothing stored.
        """
        request = request or ReportRequest()

        if request.scenario_data is not None and request.scenario_data.primary is not None:
            logger.debug("Using scenario data from request body")
            return ScenarioBundle(
                primary=_owned_by(request.scenario_data.primary, user_id),
                comparisons=tuple(request.scenario_data.comparisons),
            )

        if request.legacy_scenarios:
            logger.debug("Using legacy scenario from request body")
            return ScenarioBundle(primary=_owned_by(request.legacy_scenarios[0].to_scenario(), user_id))

        primary = await self.store.get_primary_scenario(user_id)
        if primary is not None:
            comparisons = await self.store.list_comparison_scenarios(user_id)
            return ScenarioBundle(primary=primary, comparisons=tuple(comparisons))

        legacy = await self.store.get_latest_legacy_scenario(user_id)
        if legacy is not None:
            logger.info(
                "Falling back to legacy saved scenario",
                extra={'extra_data': {'user_id': user_id, 'scenario_id': legacy.id}}
            )
            return ScenarioBundle(primary=_owned_by(legacy.to_scenario(), user_id))

        raise ScenarioNotFound()
