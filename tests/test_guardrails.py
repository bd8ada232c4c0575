from __future__ import annotations

import pytest

from fluxpanel.settings.guardrails import (
    DEFAULT_GUARDRAILS,
    Guardrail,
    check_value,
    format_value,
    guardrail_hint,
    merge_guardrails,
    parse_guardrails,
)


class TestCheckValue:
    def test_in_range_accepted(self):
        assert check_value(DEFAULT_GUARDRAILS, "stop_loss_pct", 0.01) is None
        assert check_value(DEFAULT_GUARDRAILS, "max_open_positions", 10) is None
        # bounds are inclusive
        assert check_value(DEFAULT_GUARDRAILS, "conf_threshold", 0.5) is None
        assert check_value(DEFAULT_GUARDRAILS, "conf_threshold", 0.8) is None

    def test_out_of_range_rejected(self):
        assert check_value(DEFAULT_GUARDRAILS, "conf_threshold", 0.85) == "Must be between 0.5 and 0.8"
        assert check_value(DEFAULT_GUARDRAILS, "max_hold_min", 5) == "Must be between 15 and 390"
        assert check_value(DEFAULT_GUARDRAILS, "stop_loss_pct", 0.001) == "Must be between 0.005 and 0.03"

    def test_unknown_field_is_not_validated(self):
        assert check_value(DEFAULT_GUARDRAILS, "symbols", "QQQ,SPY") is None
        assert check_value(DEFAULT_GUARDRAILS, None, 999) is None

    @pytest.mark.parametrize("bad", ["abc", None, True, float("nan")])
    def test_non_numeric_rejected(self, bad):
        assert check_value(DEFAULT_GUARDRAILS, "mom_lookback", bad) == "Must be a number"

    def test_numeric_strings_are_parsed(self):
        assert check_value(DEFAULT_GUARDRAILS, "mom_lookback", "8") is None


def test_parse_and_merge_guardrails():
    parsed = parse_guardrails({"max_open_positions": {"min": 1, "max": 8, "default": 4}})
    assert parsed["max_open_positions"].max == 8
    assert parsed["max_open_positions"].recommended is None

    merged = merge_guardrails(DEFAULT_GUARDRAILS, {"max_open_positions": {"min": 2, "max": 4}})
    assert merged["max_open_positions"].min == 2
    assert merged["stop_loss_pct"] == DEFAULT_GUARDRAILS["stop_loss_pct"]
    assert DEFAULT_GUARDRAILS["max_open_positions"].max == 10


def test_parse_guardrails_rejects_missing_bounds():
    with pytest.raises(ValueError):
        parse_guardrails({"x": {"min": 1}})


class TestHint:
    def test_optimal_at_recommended(self):
        h = guardrail_hint(DEFAULT_GUARDRAILS["max_hold_min"], 120)
        assert h.zone == "Optimal"
        assert h.level == "success"
        assert h.position == pytest.approx(h.recommended_position)
        assert h.min_label == "15"
        assert h.max_label == "390"

    def test_far_from_recommended_is_high_risk(self):
        g = Guardrail(min=0, max=100, recommended=50)
        assert guardrail_hint(g, 80).zone == "Moderate"  # 30 away
        assert guardrail_hint(g, 95).zone == "High risk"  # 45 away
        assert guardrail_hint(g, 75).zone == "Optimal"  # exactly 25 away

    def test_position_is_clamped(self):
        g = Guardrail(min=0, max=10, recommended=5)
        assert guardrail_hint(g, 50).position == 100
        assert guardrail_hint(g, -5).position == 0

    def test_degenerate_range_centers(self):
        g = Guardrail(min=5, max=5, recommended=5)
        h = guardrail_hint(g, 5)
        assert h.position == 50
        assert h.recommended_position == 50

    def test_no_recommended_uses_midpoint(self):
        h = guardrail_hint(Guardrail(min=0, max=10), 5)
        assert h.recommended_position == 50
        assert h.recommended_label is None

    def test_percent_labels(self):
        h = guardrail_hint(DEFAULT_GUARDRAILS["stop_loss_pct"], 0.015, is_percent=True)
        assert h.min_label == "0.50%"
        assert h.max_label == "3.00%"
        assert h.value_label == "1.50%"


def test_format_value():
    assert format_value(3) == "3"
    assert format_value(3.0) == "3"
    assert format_value(0.1234) == "0.12"
    assert format_value(0.1234, decimals=3) == "0.123"
    assert format_value(0.02, is_percent=True, decimals=1) == "2.0%"


def test_hint_uses_default_when_no_recommended():
    h = guardrail_hint(Guardrail(min=0, max=10, default=2), 2)
    assert h.recommended_position == 20
    assert h.zone == "Optimal"
    assert h.recommended_label == "2"
