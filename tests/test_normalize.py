from brandstamp.normalize import (
    collapse_whitespace,
    evaluate_font_style,
    evaluate_font_weight,
    parse_flag,
    shadow_type,
    to_int,
)


def test_evaluate_font_weight() -> None:
    assert evaluate_font_weight("bold") == 700
    assert evaluate_font_weight("Semi-Bold") == 600
    assert evaluate_font_weight(750) == 700
    assert evaluate_font_weight("950") == 800
    assert evaluate_font_weight(0) == 400
    assert evaluate_font_weight("nonsense") == 400
    assert evaluate_font_weight(None, default=300) == 300


def test_evaluate_font_style() -> None:
    assert evaluate_font_style("ITALIC") == "italic"
    assert evaluate_font_style("normal") == "normal"
    assert evaluate_font_style("oblique") == "normal"
    assert evaluate_font_style(None) == "normal"


def test_shadow_type_markers() -> None:
    assert shadow_type("-2", "2") == "open"
    assert shadow_type("2S", 2) == "solid"
    assert shadow_type("2S", "3G") == "gradient"
    assert shadow_type("4G", "4S") == "solid"


def test_flags_and_numbers() -> None:
    assert parse_flag("on") and parse_flag("YES") and parse_flag(1) and parse_flag(True)
    assert not parse_flag("off") and not parse_flag("") and not parse_flag(None) and not parse_flag(0)
    assert to_int("12px") == 12
    assert to_int("x", default=5) == 5
    assert collapse_whitespace("  a \n\t b ") == "a b"
