"""
Tests for configuration and metadata.
"""

import json
import logging
import sys
from pathlib import Path

import pytest

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from relief.config import (
    DEFAULT_CONFIG,
    EdgeParameters,
    EdgeType,
    Quality,
    ReliefConfig,
    ReliefMetadata,
    clamp,
)
from relief.errors import InvalidParameterError


# ============== ReliefConfig Tests ==============

class TestReliefConfig:
    """Test configuration defaults and serialisation."""

    def test_default_values(self):
        config = ReliefConfig()

        assert config.edge_type is EdgeType.VERTICAL
        assert config.edge_width == 20.0
        assert config.chamfer_angle == 45.0
        assert config.model_height == 1.5
        assert config.quality is Quality.HIGH
        assert config.enable_dpi_optimization is False
        assert config.enable_smoothing is False
        assert config.source_dpi is None

    def test_sampling_steps(self):
        assert Quality.LOW.sampling_step == 8
        assert Quality.MEDIUM.sampling_step == 4
        assert Quality.HIGH.sampling_step == 2
        assert Quality.ULTRA.sampling_step == 1
        assert ReliefConfig(quality=Quality.ULTRA).sampling_step == 1

    def test_edge_parameters(self):
        config = ReliefConfig(edge_type=EdgeType.CHAMFERED, edge_width=7.0, chamfer_angle=30.0)
        params = config.edge_parameters

        assert params == EdgeParameters(EdgeType.CHAMFERED, 7.0, 30.0)

    def test_to_dict_uses_enum_values(self):
        d = ReliefConfig(edge_type=EdgeType.ROUNDED, quality=Quality.LOW).to_dict()
        assert d["edge_type"] == "rounded"
        assert d["quality"] == "low"
        assert "output_dir" not in d

    def test_json_round_trip(self, tmp_path):
        config = ReliefConfig(
            edge_type=EdgeType.ROUNDED,
            edge_width=12.5,
            enable_smoothing=True,
            smoothing_strength=0.3,
            quality=Quality.MEDIUM,
        )
        path = tmp_path / "cfg" / "relief.json"
        config.save(path)

        loaded = ReliefConfig.from_json(path)
        assert loaded.to_dict() == config.to_dict()

    def test_from_dict_partial(self):
        config = ReliefConfig.from_dict({"edge_type": "chamfered", "output_dir": "out"})
        assert config.edge_type is EdgeType.CHAMFERED
        assert config.output_dir == Path("out")
        assert config.edge_width == 20.0

    @pytest.mark.parametrize("data", [{"edge_type": "wavy"}, {"quality": "extreme"}])
    def test_from_dict_rejects_unknown_enum(self, data):
        with pytest.raises(InvalidParameterError):
            ReliefConfig.from_dict(data)

    def test_default_config_is_valid(self):
        DEFAULT_CONFIG.edge_parameters.validate()


# ============== Clamp Tests ==============

class TestClamp:
    def test_in_range_is_silent(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert clamp(0.5, 0.0, 1.0, name="strength") == 0.5
        assert caplog.records == []

    def test_out_of_range_warns(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert clamp(3.0, 0.0, 1.0, name="strength") == 1.0
        assert "strength" in caplog.text

    def test_nan_rejected(self):
        with pytest.raises(InvalidParameterError, match="strength"):
            clamp(float("nan"), 0.0, 1.0, name="strength")


# ============== ReliefMetadata Tests ==============

class TestReliefMetadata:
    def test_save_and_reload(self, tmp_path):
        metadata = ReliefMetadata(
            source_name="logo",
            source_size_px={"width": 40, "height": 20},
            output_size_px={"width": 80, "height": 40},
            physical_size_mm={"width": 14.1111, "height": 7.0556},
            dpi=72.0,
            dpi_estimated=True,
            grid_size={"width": 40, "height": 20},
            sampling_step=2,
            n_vertices=800,
            n_triangles=1482,
        )
        path = tmp_path / "logo.json"
        metadata.save(path)

        with open(path) as f:
            assert ReliefMetadata.from_dict(json.load(f)) == metadata
