from conftest import INVALID_BODY, VALID_BODY, FakeResponse, FakeSession
from fbr_di.gateway import GatewayClient
from fbr_di.models import Company
from fbr_di.regression import run_regression
from fbr_di.scenarios import CATALOG_VERSION, SCENARIOS, get_scenario, list_scenarios, sale_type_for


def make_client(session):
    return GatewayClient('tok', session=session, backoff=0, sleep=lambda seconds: None)


def test_catalog_shape():
    ids = [scenario.id for scenario in SCENARIOS]
    assert CATALOG_VERSION
    assert len(ids) == 28
    assert len(set(ids)) == 28
    assert ids[:3] == ['SN002', 'SN001', 'SN003']
    assert [scenario.id for scenario in list_scenarios(sort_by_id=True)][:3] == ['SN001', 'SN002', 'SN003']
    for scenario in SCENARIOS:
        assert scenario.payload['scenarioId'] == scenario.id
        assert scenario.name.startswith(scenario.id)
        assert scenario.payload['items']


def test_lookup():
    assert get_scenario('SN008').sale_type == '3rd Schedule Goods'
    assert get_scenario('SN999') is None
    assert sale_type_for('SN999') is None


def test_one_result_per_scenario_in_order(company):
    session = FakeSession(FakeResponse(200, VALID_BODY))
    sleeps = []

    report = run_regression(make_client(session), company, delay=0.5, sleep=sleeps.append)

    assert [result.scenario_id for result in report.results] == [scenario.id for scenario in SCENARIOS]
    assert report.passed == 28
    assert report.failed == 0
    assert sleeps == [0.5] * 27
    assert all(call['url'].endswith('validateinvoicedata_sb') for call in session.calls)
    assert all(call['json']['sellerNTNCNIC'] == '8885801' for call in session.calls)


def test_sorted_view(company):
    report = run_regression(make_client(FakeSession(FakeResponse(200, VALID_BODY))), company,
                            delay=0, sleep=lambda seconds: None)
    data = report.to_dict(sort_by_id=True)
    ids = [result['scenario_id'] for result in data['results']]
    assert ids == sorted(ids)
    assert data['total'] == 28
    assert report.by_id()['SN024'].success


def test_failures_do_not_stop_the_run(company):
    session = FakeSession(FakeResponse(200, INVALID_BODY), FakeResponse(503, None, text='down'),
                          FakeResponse(200, VALID_BODY))
    client = GatewayClient('tok', session=session, max_retries=0, sleep=lambda seconds: None)
    scenarios = [get_scenario('SN001'), get_scenario('SN002'), get_scenario('SN003')]

    report = run_regression(client, company, scenarios=scenarios, delay=0)

    assert [result.outcome for result in report.results] == ['invalid', 'remote_error', 'valid']
    assert report.passed == 1
    assert report.failed == 2
    assert report.results[0].error
    assert report.results[0].request_payload['scenarioId'] == 'SN001'


def test_missing_seller_ntn_is_reported_per_scenario():
    session = FakeSession(FakeResponse(200, VALID_BODY))
    scenarios = [get_scenario('SN001'), get_scenario('SN002')]

    report = run_regression(make_client(session), Company(id='x'), scenarios=scenarios, delay=0)

    assert [result.outcome for result in report.results] == ['payload_error', 'payload_error']
    assert session.calls == []
