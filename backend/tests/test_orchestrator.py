from __future__ import annotations

import pytest

from schemas.tour import OptimizationOptions
from modules.optimization.errors import TourNotFoundError
from modules.optimization.orchestrator import Orchestrator

from fakes import TODAY, FailingLLMClient, MockLLMClient, ai_json

AI_ANSWER = ai_json(
    optimizedSequence=[11, 14, 12, 13],
    suggestedDates={"14": "2025-06-03", "13": "2025-06-25"},
    recommendedVenues=[14, 13],
    suggestedSkips=[],
    reasoning="West coast first, then New York.",
)


@pytest.fixture
def make_orchestrator(store, run_log):
    def _make(client=None):
        return Orchestrator(store, llm_client=client, run_logger=run_log, today=TODAY)
    return _make


def _events(run_log, run_id):
    return [record["event_type"] for record in run_log.read(run_id)]


def test_standard(make_orchestrator, run_log):
    outcome = make_orchestrator(MockLLMClient(AI_ANSWER)).optimize(1, method="standard")
    assert outcome.result.optimization_method == "standard"
    assert not outcome.result.degraded
    assert outcome.snapshot.tour_id == 1
    assert _events(run_log, outcome.run_id) == ["optimization_start", "optimization_result"]


def test_auto_without_ai_uses_deterministic_path(make_orchestrator):
    outcome = make_orchestrator(None).optimize(1)
    assert outcome.result.optimization_method == "standard"
    assert not outcome.result.degraded
    assert outcome.result.ai_error is None


def test_ai_without_collaborator_is_degraded(make_orchestrator, run_log):
    outcome = make_orchestrator(None).optimize(1, method="ai")
    assert outcome.result.degraded
    assert outcome.result.optimization_method == "standard"
    assert outcome.result.ai_error["errorType"] == "CollaboratorUnavailableError"
    assert "ai_fallback" in _events(run_log, outcome.run_id)


def test_auto_with_ai_success(make_orchestrator):
    client = MockLLMClient(AI_ANSWER)
    outcome = make_orchestrator(client).optimize(1)
    assert len(client.prompts) == 1
    assert outcome.result.optimization_method == "ai"
    assert outcome.result.optimized_sequence == [11, 14, 12, 13]
    assert outcome.result.reasoning == "West coast first, then New York."


def test_auto_with_custom_options_reruns_constraints(make_orchestrator):
    options = OptimizationOptions(venue_priorities={13: 9})
    orchestrator = make_orchestrator(MockLLMClient(AI_ANSWER))

    merged = orchestrator.optimize(1, options).result
    standard = orchestrator.optimize(1, options, method="standard").result

    assert merged.optimization_method == "ai"
    assert merged.reasoning.startswith("West coast first, then New York.")
    assert merged.reasoning.endswith("Enhanced with venue priorities and scheduling constraints.")
    assert merged.optimized_sequence == standard.optimized_sequence
    assert merged.suggested_dates == standard.suggested_dates
    assert set(merged.suggested_dates) == {13, 14}
    assert merged.recommended_venues == [14, 13]


def test_ai_method_with_custom_options_keeps_ai_ordering(make_orchestrator):
    options = OptimizationOptions(venue_priorities={13: 9})
    result = make_orchestrator(MockLLMClient(AI_ANSWER)).optimize(1, options, method="ai").result
    assert result.optimized_sequence == [11, 14, 12, 13]


@pytest.mark.parametrize("client", [FailingLLMClient(), MockLLMClient("no idea, sorry")])
@pytest.mark.parametrize("method", ["ai", "auto"])
def test_ai_failures_never_escape(make_orchestrator, client, method):
    result = make_orchestrator(client).optimize(1, method=method).result
    assert result.degraded
    assert result.optimization_method == "standard"
    assert result.ai_error["details"]
    assert sorted(result.optimized_sequence) == [11, 12, 13, 14]


def test_unknown_tour(make_orchestrator):
    with pytest.raises(TourNotFoundError, match="ERROR_TOUR_NOT_FOUND"):
        make_orchestrator().optimize(404)


def test_unknown_method(make_orchestrator):
    with pytest.raises(ValueError):
        make_orchestrator().optimize(1, method="genetic")


def test_outcome_serialisation(make_orchestrator):
    body = make_orchestrator().optimize(1).to_dict()
    assert body["tourData"]["artistName"] == "The Night Owls"
    assert [v["id"] for v in body["tourData"]["confirmedVenues"]] == [11, 12]
    assert body["tourData"]["confirmedVenues"][0]["isFixed"] is True
    result = body["optimizationResult"]
    assert result["optimizationMethod"] == "standard"
    assert result["suggestedDates"]["14"] == "2025-06-02"
    assert set(result["calculatedMetrics"]) == {
        "totalDistance", "totalTravelTimeMinutes", "optimizedDistance", "optimizedTimeMinutes",
    }
    assert "aiError" not in result


def test_run_log_records_are_readable_per_run(make_orchestrator, run_log):
    first = make_orchestrator().optimize(1, method="standard")
    second = make_orchestrator().optimize(1, method="standard")
    assert first.run_id != second.run_id
    records = run_log.read(first.run_id)
    assert [r["run_id"] for r in records] == [first.run_id, first.run_id]
    assert records[-1]["payload"]["optimizedSequence"] == [13, 11, 14, 12]
    assert run_log.read("no_such_run") == []
