"""
Tests for caption styling.
"""

import pytest

from captioner.style import AnimationKind, StyleConfig, clamp_percent


class TestAnimationKind:

    @pytest.mark.parametrize("name", ["fade", "bounce", "scale", "typewriter"])
    def test_known_names(self, name):
        assert AnimationKind.parse(name).value == name

    def test_case_insensitive(self):
        assert AnimationKind.parse(" Bounce ") is AnimationKind.BOUNCE

    def test_unknown_falls_back_to_fade(self):
        assert AnimationKind.parse("wobble") is AnimationKind.FADE


class TestStyleConfig:

    def test_defaults(self):
        style = StyleConfig()
        assert style.font_size_px == 28
        assert style.vertical_position_percent == 90.0
        assert style.animation is AnimationKind.FADE

    @pytest.mark.parametrize("raw,expected", [(-5, 0.0), (150, 100.0), (42.5, 42.5)])
    def test_position_clamped(self, raw, expected):
        assert StyleConfig.create(vertical_position_percent=raw).vertical_position_percent == expected

    def test_nan_position(self):
        assert clamp_percent(float("nan")) == 100.0

    @pytest.mark.parametrize("size", [0, -12])
    def test_rejects_non_positive_font_size(self, size):
        with pytest.raises(ValueError):
            StyleConfig.create(font_size_px=size)

    def test_font_family_passthrough(self):
        assert StyleConfig.create(font_family="DejaVu Sans").font_family == "DejaVu Sans"

    def test_immutable(self):
        with pytest.raises(AttributeError):
            StyleConfig().font_size_px = 40


class TestForceStyle:

    @pytest.mark.parametrize("pct,margin", [(100, 0), (90, 60), (0, 600), (87.5, 75), (99.92, 0)])
    def test_margin_v(self, pct, margin):
        assert StyleConfig.create(vertical_position_percent=pct).margin_v == margin

    def test_force_style_string(self):
        style = StyleConfig.create(font_size_px=32, vertical_position_percent=80, font_family="Arial")
        assert style.force_style() == (
            "FontName=Arial,FontSize=32,PrimaryColour=&H00FFFFFF,"
            "OutlineColour=&H00000000,BorderStyle=1,Outline=2,Shadow=0,"
            "Alignment=2,MarginV=120"
        )
