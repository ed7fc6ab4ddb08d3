"""
Color mapping tests: anchors, interpolation, transparency, bad config.
"""

import numpy as np
import pytest

from color_mapping import ANCHOR_COLORS, DOMAIN, ColorMapping, TRANSPARENT, hex_to_rgb
from map_errors import ConfigError


@pytest.fixture
def mapping():
    return ColorMapping()


class TestAnchors:

    def test_low_end_is_first_anchor(self, mapping):
        assert mapping.color_for(DOMAIN[0]) == hex_to_rgb(ANCHOR_COLORS[0]) + (255,)

    def test_high_end_is_last_anchor(self, mapping):
        assert mapping.color_for(DOMAIN[1]) == hex_to_rgb(ANCHOR_COLORS[2]) + (255,)

    def test_middle_of_domain_is_mid_anchor(self, mapping):
        mid = (DOMAIN[0] + DOMAIN[1]) / 2
        assert mapping.color_for(mid) == hex_to_rgb(ANCHOR_COLORS[1]) + (255,)

    def test_anchor_values(self):
        assert hex_to_rgb("#0C2C84") == (12, 44, 132)
        assert hex_to_rgb("#41B6C4") == (65, 182, 196)
        assert hex_to_rgb("#FFFFCC") == (255, 255, 204)


class TestInterpolation:

    def test_channels_monotonic_across_domain(self, mapping):
        values = np.linspace(DOMAIN[0], DOMAIN[1], 2001)
        rgba = mapping.apply(values)
        for channel in range(3):
            assert np.all(np.diff(rgba[:, channel].astype(int)) >= 0)

    def test_continuous(self, mapping):
        values = np.linspace(DOMAIN[0], DOMAIN[1], 2001)
        rgba = mapping.apply(values).astype(int)
        # step of 0.028 % cover never jumps more than a couple of levels
        assert np.abs(np.diff(rgba[:, :3], axis=0)).max() <= 2

    def test_in_domain_is_opaque(self, mapping):
        rgba = mapping.apply(np.array([-1.0, 0.0, 10.5, 54.9, 55.0]))
        assert (rgba[:, 3] == 255).all()

    def test_quarter_point_between_low_and_mid(self, mapping):
        quarter = DOMAIN[0] + (DOMAIN[1] - DOMAIN[0]) / 4
        rgba = mapping.color_for(quarter)
        expected = ((12 + 65) / 2, (44 + 182) / 2, (132 + 196) / 2)
        for got, want in zip(rgba[:3], expected):
            assert abs(got - want) <= 1

    def test_deterministic(self, mapping):
        assert mapping.color_for(17.3) == mapping.color_for(17.3)
        assert ColorMapping().color_for(17.3) == mapping.color_for(17.3)

    def test_apply_matches_color_for(self, mapping):
        values = np.array([[-1.0, 3.3], [27.0, 55.0]])
        rgba = mapping.apply(values)
        for (i, j), value in np.ndenumerate(values):
            assert tuple(rgba[i, j]) == mapping.color_for(value)


class TestTransparent:

    @pytest.mark.parametrize("value", [-1.0001, -50.0, 55.0001, 1e9, float("nan"), float("inf")])
    def test_outside_domain(self, mapping, value):
        assert mapping.color_for(value) == TRANSPARENT

    def test_none(self, mapping):
        assert mapping.color_for(None) == TRANSPARENT

    def test_nodata_sentinel_inside_domain(self, mapping):
        assert mapping.color_for(0.0, nodata=0.0) == TRANSPARENT
        assert mapping.color_for(0.5, nodata=0.0) != TRANSPARENT

    def test_sentinel_in_array(self, mapping):
        rgba = mapping.apply(np.array([[-9999.0, 5.0]]), nodata=-9999.0)
        assert tuple(rgba[0, 0]) == TRANSPARENT
        assert rgba[0, 1, 3] == 255


class TestConfig:

    def test_equal_bounds_rejected(self):
        with pytest.raises(ConfigError):
            ColorMapping(low=5.0, high=5.0)

    def test_inverted_bounds_rejected(self):
        with pytest.raises(ConfigError):
            ColorMapping(low=55.0, high=-1.0)

    def test_single_anchor_rejected(self):
        with pytest.raises(ConfigError):
            ColorMapping(colors=["#000000"])

    def test_bad_hex_rejected(self):
        with pytest.raises(ConfigError):
            ColorMapping(colors=["#000000", "#GGGGGG"])

    def test_legend(self, mapping):
        legend = mapping.legend()
        assert legend["domain"] == [-1.0, 55.0]
        assert legend["colors"] == list(ANCHOR_COLORS)
        assert legend["title"] == "% cover"
