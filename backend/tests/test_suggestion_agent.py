from __future__ import annotations

import threading
from datetime import date

import pytest

from modules.optimization.suggestion_agent import RouteSuggestionAgent

from fakes import FailingLLMClient, MockLLMClient, SlowLLMClient, ai_json


@pytest.fixture
def make_agent(optimizer):
    def _make(client, **kwargs):
        return RouteSuggestionAgent(client, optimizer=optimizer, **kwargs)
    return _make


def _good_payload(sequence):
    return ai_json(
        optimizedSequence=sequence,
        suggestedDates={"14": "2025-06-03", "13": "2025-06-25", "11": "2025-07-01"},
        recommendedVenues=[14, 13],
        suggestedSkips=[],
        estimatedDistanceReduction="35%",
        estimatedTimeSavings="30%",
        reasoning="Portland sits between Seattle and LA; New York closes the run.",
    )


# ── Prompt ────────────────────────────────────────────────────────────────────

def test_prompt_is_deterministic_and_complete(snapshot, make_agent):
    agent = make_agent(MockLLMClient("{}"))
    prompt = agent.build_prompt(snapshot)
    assert prompt == agent.build_prompt(snapshot)
    assert "The Night Owls" in prompt
    assert "indie, folk" in prompt
    assert "ID: 11" in prompt and "ID: 14" in prompt
    assert "ID: 15" not in prompt                       # cancelled
    assert "[45.5, -122.7]" in prompt
    assert "2025-06-01" in prompt
    assert '"optimizedSequence"' in prompt


# ── Success paths ─────────────────────────────────────────────────────────────

def test_ai_result_with_real_ids(snapshot, make_agent):
    client = MockLLMClient(_good_payload([11, 14, 12, 13]))
    result = make_agent(client).suggest(snapshot)

    assert len(client.prompts) == 1
    assert result.optimization_method == "ai"
    assert not result.degraded
    assert result.optimized_sequence == [11, 14, 12, 13]
    # dates only for stops that had none
    assert result.suggested_dates == {14: date(2025, 6, 3), 13: date(2025, 6, 25)}
    assert result.recommended_venues == [14, 13]
    assert result.claimed_metrics == {"estimatedDistanceReduction": "35%", "estimatedTimeSavings": "30%"}
    # metrics are recomputed, not copied from the AI
    assert result.metrics.optimized_distance < result.metrics.total_distance
    assert result.estimated_distance_reduction > 0


def test_ai_result_with_positional_ids(snapshot, make_agent):
    # positions into confirmed + potential: 1=11, 2=12, 3=13, 4=14
    result = make_agent(MockLLMClient(_good_payload([1, 4, 2, 3]))).suggest(snapshot)
    assert not result.degraded
    assert result.optimized_sequence == [11, 14, 12, 13]


def test_fenced_and_sentence_answers(snapshot, make_agent):
    fenced = "Sure!\n```json\n" + _good_payload([11, 14, 12, 13]) + "\n```"
    assert make_agent(MockLLMClient(fenced)).suggest(snapshot).optimized_sequence == [11, 14, 12, 13]

    sentence = "After review, the optimal sequence is: 11, 14, 12, 13."
    result = make_agent(MockLLMClient(sentence)).suggest(snapshot)
    assert not result.degraded
    assert result.optimized_sequence == [11, 14, 12, 13]
    assert result.suggested_dates == {}
    assert "non-JSON" in result.reasoning


# ── Failure paths degrade to the deterministic result ─────────────────────────

def _assert_degraded(result, error_type):
    assert result.degraded
    assert result.optimization_method == "standard"
    assert result.ai_error["errorType"] == error_type
    assert result.ai_error["message"]
    assert result.ai_error["details"]
    assert sorted(result.optimized_sequence) == [11, 12, 13, 14]


def test_no_client_configured(snapshot, make_agent):
    agent = make_agent(None)
    assert not agent.configured
    _assert_degraded(agent.suggest(snapshot), "CollaboratorUnavailableError")


def test_client_raises(snapshot, make_agent):
    _assert_degraded(make_agent(FailingLLMClient()).suggest(snapshot), "RuntimeError")


def test_non_json_text(snapshot, make_agent):
    result = make_agent(MockLLMClient("I could not work this one out.")).suggest(snapshot)
    _assert_degraded(result, "SuggestionParseError")


def test_blank_text(snapshot, make_agent):
    _assert_degraded(make_agent(MockLLMClient("   ")).suggest(snapshot), "SuggestionParseError")


def test_missing_sequence_field(snapshot, make_agent):
    result = make_agent(MockLLMClient(ai_json(reasoning="looks fine"))).suggest(snapshot)
    _assert_degraded(result, "SuggestionValidationError")


def test_dropping_or_reordering_confirmed_stops_is_rejected(snapshot, make_agent):
    dropped = make_agent(MockLLMClient(ai_json(optimizedSequence=[11, 14, 13]))).suggest(snapshot)
    _assert_degraded(dropped, "SuggestionValidationError")

    swapped = make_agent(MockLLMClient(ai_json(optimizedSequence=[12, 14, 11, 13]))).suggest(snapshot)
    _assert_degraded(swapped, "SuggestionValidationError")


def test_timeout(snapshot, make_agent):
    client = SlowLLMClient(delay=5.0, response=_good_payload([11, 14, 12, 13]))
    try:
        result = make_agent(client, timeout_seconds=0.2).suggest(snapshot)
    finally:
        client.release.set()
    _assert_degraded(result, "SuggestionTimeoutError")


def test_timeout_override_per_call(snapshot, make_agent):
    client = SlowLLMClient(delay=5.0)
    try:
        result = make_agent(client, timeout_seconds=30).suggest(snapshot, timeout_seconds=0.1)
    finally:
        client.release.set()
    _assert_degraded(result, "SuggestionTimeoutError")


def test_cancellation(snapshot, make_agent):
    client = SlowLLMClient(delay=5.0)
    cancel = threading.Event()
    cancel.set()
    try:
        result = make_agent(client).suggest(snapshot, cancel_event=cancel)
    finally:
        client.release.set()
    _assert_degraded(result, "SuggestionCancelledError")


def test_fallback_uses_callers_options(snapshot, make_agent):
    from schemas.tour import OptimizationOptions

    options = OptimizationOptions(preferred_dates={13: date(2025, 6, 10)})
    result = make_agent(FailingLLMClient()).suggest(snapshot, options)
    assert result.degraded
    assert result.suggested_dates[13] == date(2025, 6, 10)


# ── AI dates are checked for collisions ───────────────────────────────────────

def test_ai_date_on_confirmed_stop_date_is_reported(snapshot, make_agent):
    answer = ai_json(optimizedSequence=[11, 14, 12, 13], suggestedDates={"14": "2025-06-01"})
    result = make_agent(MockLLMClient(answer)).suggest(snapshot)

    assert result.optimization_method == "ai"
    assert not result.degraded
    assert result.suggested_dates == {14: date(2025, 6, 1)}
    assert len(result.date_conflicts) == 1
    conflict = result.date_conflicts[0]
    assert (conflict.stop_id, conflict.conflict_with) == (14, 11)
    assert conflict.suggested_alternative_date == date(2025, 6, 2)


def test_two_ai_dates_on_the_same_day_are_reported(snapshot, make_agent):
    from schemas.tour import OptimizationOptions

    answer = ai_json(
        optimizedSequence=[11, 14, 12, 13],
        suggestedDates={"14": "2025-06-03", "13": "2025-06-03"},
    )
    options = OptimizationOptions(avoid_dates={date(2025, 6, 4)})
    result = make_agent(MockLLMClient(answer)).suggest(snapshot, options)

    assert [(c.stop_id, c.conflict_with) for c in result.date_conflicts] == [(13, 14)]
    assert result.date_conflicts[0].suggested_alternative_date == date(2025, 6, 5)


def test_clean_ai_dates_have_no_conflicts(snapshot, make_agent):
    result = make_agent(MockLLMClient(_good_payload([11, 14, 12, 13]))).suggest(snapshot)
    assert result.date_conflicts == []


# ── Abandoned calls ───────────────────────────────────────────────────────────

def test_abandoned_call_runs_on_a_daemon_thread(snapshot, make_agent):
    client = SlowLLMClient(delay=5.0)
    try:
        result = make_agent(client, timeout_seconds=0.1).suggest(snapshot)
        workers = [t for t in threading.enumerate() if t.name == "ai-suggest" and t.is_alive()]
        assert workers
        assert all(t.daemon for t in workers)
    finally:
        client.release.set()
    _assert_degraded(result, "SuggestionTimeoutError")
