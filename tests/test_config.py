"""Tests for converter configuration."""

import pytest

from glc_core.converter.config import ConverterConfig


class TestConverterConfig:
    def test_defaults(self):
        config = ConverterConfig()
        config.validate()
        assert config.node_tolerance_mm == 0.5
        assert config.snap_tolerance_mm == 0.2
        assert config.max_insert_depth == 20
        assert config.coordinate_digits == 4

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GLC_NODE_TOLERANCE_MM", "1.5")
        monkeypatch.setenv("GLC_MAX_INSERT_DEPTH", "5")
        monkeypatch.setenv("GLC_SPLINE_TARGET_LENGTH_MM", "250")

        config = ConverterConfig.from_env()

        assert config.node_tolerance_mm == 1.5
        assert config.max_insert_depth == 5
        assert config.spline_target_length_mm == 250
        assert config.snap_tolerance_mm == 0.2

    def test_decomposition_options(self):
        options = ConverterConfig(spline_max_arc_radius_mm=1000).decomposition_options()
        assert options.max_arc_radius == 1000
        assert options.target_length == 400

    @pytest.mark.parametrize(
        "overrides",
        [
            {"node_tolerance_mm": 0},
            {"max_insert_expansions": -1},
            {"coordinate_digits": 0},
            {"snap_tolerance_mm": 0.6},
        ],
    )
    def test_validate_rejects(self, overrides):
        with pytest.raises(ValueError):
            ConverterConfig(**overrides).validate()
