"""
Tests for the staged JSON recovery parser.
"""
import json

import pytest

from quotex.config import PipelineConfig
from quotex.errors import RecoveryError
from quotex.extract.recovery import RecoveryParser, recover_json, repair_structure


def _sample_document(n_items: int = 15) -> dict:
    return {
        "groups": [
            {
                "group": f"Group {g}",
                "items": [
                    {
                        "code": f"C{g}-{i}",
                        "description": f"Item number {i}",
                        "quantity": i,
                        "list_price": i * 1.5,
                        "active": True,
                        "brand": None,
                    }
                    for i in range(1, n_items + 1)
                ],
            }
            for g in range(1, 4)
        ]
    }


class TestSubstringStage:

    def test_plain_json_parses_at_stage_one(self):
        result = recover_json('{"a": 1, "b": [1, 2]}')
        assert result.value == {"a": 1, "b": [1, 2]}
        assert result.stage == 1

    def test_serialized_document_round_trips(self):
        doc = _sample_document()
        assert recover_json(json.dumps(doc)).value == doc

    def test_code_fence_and_prose_are_stripped(self):
        text = 'Sure! Here it is:\n```json\n{"groups": []}\n```\nLet me know.'
        result = recover_json(text)
        assert result.value == {"groups": []}
        assert result.stage == 1

    def test_byte_order_mark_is_ignored(self):
        assert recover_json("\ufeff[{\"x\": 1}]").value == [{"x": 1}]

    def test_top_level_list_is_accepted(self):
        assert recover_json("[1, 2, 3]").value == [1, 2, 3]


class TestRepairStage:

    def test_truncated_fenced_response(self):
        text = 'Here is the result:\n```json\n{"a":1,"b":[2,3\n```'
        result = recover_json(text)
        assert result.value == {"a": 1, "b": [2, 3]}
        assert result.stage == 2

    def test_trailing_commas_are_removed(self):
        assert recover_json('{"a": [1, 2,], "b": 3,}').value == {"a": [1, 2], "b": 3}

    def test_unterminated_string_is_closed(self):
        assert recover_json('{"name": "Tablero princ').value == {"name": "Tablero princ"}

    def test_key_without_value_is_dropped(self):
        assert recover_json('{"a": 1, "b":').value == {"a": 1}
        assert recover_json('{"a": 1, "bra').value == {"a": 1}

    def test_partial_literals_and_numbers_are_dropped(self):
        assert recover_json('{"a": [1, tr').value == {"a": [1]}
        assert recover_json('{"a": [1, 2.').value == {"a": [1]}
        assert recover_json('{"a": nul').value == {}

    def test_comma_inside_string_is_preserved(self):
        assert recover_json('{"a": "x, ]", "b": [1,').value == {"a": "x, ]", "b": [1]}

    def test_repair_structure_closes_in_reverse_order(self):
        assert repair_structure('{"a": [{"b": [1') == '{"a": [{"b": [1]}]}'


class TestTruncationProperty:

    def test_any_truncation_past_forty_percent_recovers(self):
        text = json.dumps(_sample_document())
        parser = RecoveryParser()
        start = int(len(text) * 0.4)
        for cut in range(start, len(text) + 1):
            result = parser.parse(text[:cut])
            assert isinstance(result.value, dict), f"cut={cut}: {text[:cut][-40:]!r}"
            assert "groups" in result.value or result.value == {}

    def test_pretty_printed_truncation_recovers(self):
        text = json.dumps(_sample_document(5), indent=2)
        parser = RecoveryParser()
        for cut in range(int(len(text) * 0.4), len(text), 7):
            assert isinstance(parser.parse(text[:cut]).value, dict)

    def test_recovered_prefix_keeps_complete_items(self):
        doc = _sample_document()
        text = json.dumps(doc)
        cut = text.index('"C2-1"')
        value = recover_json(text[:cut]).value
        assert value["groups"][0] == doc["groups"][0]


class TestLargestBlockStage:

    def test_largest_parseable_block_wins(self):
        text = '{"a": 1}\nnoise } more noise\n{"b": [1, 2, 3], "c": "longer value"}'
        result = recover_json(text)
        assert result.value == {"b": [1, 2, 3], "c": "longer value"}
        assert result.stage == 4

    def test_block_search_skipped_over_size_limit(self):
        cfg = PipelineConfig(largest_block_max_chars=10)
        text = '{"a": 1}\nnoise } more noise\n{"b": [1, 2, 3]}'
        with pytest.raises(RecoveryError):
            RecoveryParser(cfg).parse(text)


class TestFailure:

    @pytest.mark.parametrize("text", ["", "   ", "no json here at all", "42", '"just a string"', "true"])
    def test_scalars_and_prose_never_succeed(self, text):
        with pytest.raises(RecoveryError):
            recover_json(text)

    def test_error_carries_length_and_previews(self):
        text = "I cannot help with that. " * 20
        with pytest.raises(RecoveryError) as exc_info:
            RecoveryParser(PipelineConfig(preview_chars=50)).parse(text)
        err = exc_info.value
        assert err.length == len(text)
        assert err.head == text[:50]
        assert err.tail == text[-50:]
        assert str(len(text)) in str(err)

    def test_short_text_has_no_separate_tail(self):
        with pytest.raises(RecoveryError) as exc_info:
            recover_json("nope")
        assert exc_info.value.head == "nope"
        assert exc_info.value.tail == ""
