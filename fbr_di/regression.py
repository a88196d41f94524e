"""Run the sandbox scenario catalog against the gateway, one scenario at a time."""

import logging
import time
from dataclasses import dataclass, field
from typing import List, Optional

from .errors import PayloadError
from .payload import build_scenario_payload
from .scenarios import SCENARIOS

logger = logging.getLogger(__name__)


@dataclass
class ScenarioResult:
    scenario_id: str
    name: str
    success: bool
    outcome: str
    status_code: Optional[int] = None
    error: Optional[str] = None
    response_data: Optional[dict] = None
    request_payload: Optional[dict] = None

    def to_dict(self):
        return {
            'scenario_id': self.scenario_id,
            'name': self.name,
            'success': self.success,
            'outcome': self.outcome,
            'status_code': self.status_code,
            'error': self.error,
            'response_data': self.response_data,
            'request_payload': self.request_payload,
        }


@dataclass
class RegressionReport:
    results: List[ScenarioResult] = field(default_factory=list)

    @property
    def passed(self):
        return sum(1 for result in self.results if result.success)

    @property
    def failed(self):
        return len(self.results) - self.passed

    def by_id(self):
        return {result.scenario_id: result for result in self.results}

    def sorted_by_id(self):
        return sorted(self.results, key=lambda result: result.scenario_id)

    def to_dict(self, sort_by_id=False):
        results = self.sorted_by_id() if sort_by_id else self.results
        return {
            'total': len(self.results),
            'passed': self.passed,
            'failed': self.failed,
            'results': [result.to_dict() for result in results],
        }


def run_regression(client, company, scenarios=None, delay=0.5, sleep=time.sleep):
    """Validate every scenario in order, pausing ``delay`` seconds between requests.

    A scenario whose payload cannot be built is reported as failed; the run
    always yields one result per scenario.
    """
    scenarios = list(SCENARIOS if scenarios is None else scenarios)
    report = RegressionReport()

    for index, scenario in enumerate(scenarios):
        if index and delay:
            sleep(delay)

        try:
            payload = build_scenario_payload(scenario, company)
        except PayloadError as e:
            logger.warning('Scenario %s skipped: %s', scenario.id, e)
            report.results.append(ScenarioResult(
                scenario_id=scenario.id,
                name=scenario.name,
                success=False,
                outcome='payload_error',
                error=str(e),
            ))
            continue

        result = client.validate(payload)
        report.results.append(ScenarioResult(
            scenario_id=scenario.id,
            name=scenario.name,
            success=result.success,
            outcome=result.outcome.value,
            status_code=result.status_code,
            error=result.error,
            response_data=result.body,
            request_payload=payload,
        ))
        logger.info('Scenario %s: %s', scenario.id, result.outcome.value)

    logger.info('Regression finished: %d passed, %d failed', report.passed, report.failed)
    return report
