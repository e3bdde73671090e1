"""Tests for drawing unit resolution."""

import pytest

from glc_core.dxf_reader.units import (
    DXF_UNIT_TO_MM,
    UnitOverride,
    resolve_unit_scale,
    unit_name,
)


class TestUnitTable:
    @pytest.mark.parametrize(
        "code,scale",
        [(0, 1.0), (1, 25.4), (2, 304.8), (4, 1.0), (5, 10.0), (6, 1000.0), (10, 914.4), (14, 100.0)],
    )
    def test_declared_codes(self, code, scale):
        assert resolve_unit_scale("auto", code) == pytest.approx(scale)

    def test_table_covers_standard_codes(self):
        assert set(DXF_UNIT_TO_MM) == set(range(19))

    def test_unknown_code_is_identity(self):
        assert resolve_unit_scale("auto", 99) == 1.0
        assert resolve_unit_scale(None, -1) == 1.0

    def test_unit_names(self):
        assert unit_name(4) == "millimeters"
        assert unit_name(42) == "unknown"


class TestOverride:
    def test_override_beats_declared_code(self):
        assert resolve_unit_scale("m", 4) == 1000.0
        assert resolve_unit_scale("cm", 6) == 10.0
        assert resolve_unit_scale(UnitOverride.MILLIMETER, 1) == 1.0

    @pytest.mark.parametrize(
        "value,expected",
        [
            ("auto", UnitOverride.AUTO),
            ("", UnitOverride.AUTO),
            (None, UnitOverride.AUTO),
            ("MM", UnitOverride.MILLIMETER),
            ("millimeter", UnitOverride.MILLIMETER),
            (" centimeters ", UnitOverride.CENTIMETER),
            ("meter", UnitOverride.METER),
            (UnitOverride.METER, UnitOverride.METER),
        ],
    )
    def test_parse_aliases(self, value, expected):
        assert UnitOverride.parse(value) is expected

    def test_unknown_override_raises(self):
        with pytest.raises(ValueError):
            UnitOverride.parse("furlong")

    def test_scale_to_mm(self):
        assert UnitOverride.CENTIMETER.scale_to_mm == 10.0
        assert UnitOverride.METER.scale_to_mm == 1000.0
