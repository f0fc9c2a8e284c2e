from __future__ import annotations

import time

from modules.optimization.response_parsers import (
    AnyObjectParser,
    FencedBlockParser,
    SequenceSentenceParser,
    WholeTextJsonParser,
    balanced_objects,
    parse_response,
)


def test_whole_text_json():
    payload, name = parse_response('  {"optimizedSequence": [3, 1, 2]}  ')
    assert payload == {"optimizedSequence": [3, 1, 2]}
    assert name == "whole_text_json"


def test_fenced_block_inside_prose():
    text = (
        "Here is the plan:\n"
        "```json\n"
        '{"optimizedSequence": [1, 2], "reasoning": "short hops"}\n'
        "```\n"
        "Let me know!"
    )
    payload, name = parse_response(text)
    assert name == "fenced_block"
    assert payload["reasoning"] == "short hops"


def test_keyed_object_preferred_over_other_objects():
    text = 'Notes {"note": "ignore me"} and then {"optimizedSequence": [5, 6]} done.'
    payload, name = parse_response(text)
    assert name == "keyed_object"
    assert payload == {"optimizedSequence": [5, 6]}


def test_any_object_when_key_absent():
    payload, name = parse_response('Result: {"reasoning": "nothing to change"} thanks')
    assert name == "any_object"
    assert payload == {"reasoning": "nothing to change"}


def test_sequence_sentence_is_partial():
    payload, name = parse_response("I think the optimal sequence is: 3, 1, 2.")
    assert name == "sequence_sentence"
    assert payload == {"optimizedSequence": [3, 1, 2], "partial": True}


def test_unparseable_text():
    assert parse_response("Sorry, I cannot help with that.") == (None, None)
    assert parse_response("") == (None, None)


def test_balanced_objects_ignores_braces_in_strings():
    spans = list(balanced_objects('x {"a": "}{", "b": {"c": 1}} y'))
    assert spans[0] == '{"a": "}{", "b": {"c": 1}}'
    assert '{"c": 1}' in spans


def test_custom_chain_order_is_respected():
    text = "```json\n{\"a\": 1}\n```"
    payload, name = parse_response(text, (AnyObjectParser(), FencedBlockParser()))
    assert name == "any_object"
    assert payload == {"a": 1}


def test_strategies_never_raise_on_mismatch():
    for parser in (WholeTextJsonParser(), FencedBlockParser(), AnyObjectParser(), SequenceSentenceParser()):
        assert parser.try_parse("plain words") == (None, False)


def test_brace_heavy_garbage_is_parsed_in_linear_time():
    unclosed = "Here you go: " + "{" * 20000 + " no closing braces"
    nested = "{" * 5000 + "}" * 5000
    started = time.monotonic()
    assert parse_response(unclosed) == (None, None)
    assert parse_response(nested) == (None, None)
    assert time.monotonic() - started < 2.0


def test_object_after_unclosed_brace_is_still_found():
    text = 'Draft { not finished... final: {"optimizedSequence": [2, 1]}'
    payload, name = parse_response(text)
    assert name == "keyed_object"
    assert payload == {"optimizedSequence": [2, 1]}


def test_quotes_in_prose_do_not_hide_objects():
    payload, _ = parse_response('He said "here it is: {"optimizedSequence": [4, 3]}')
    assert payload == {"optimizedSequence": [4, 3]}
