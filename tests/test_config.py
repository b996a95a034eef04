"""Tests for configuration serialization and loading."""

import json

from jax_armsim.config import SimulationConfig, load_config


def test_dict_round_trip():
    config = SimulationConfig()
    config.solver.max_iterations = 30
    config.motion.movement_speed = 0.5
    config.telemetry.include_grippers = True

    restored = SimulationConfig.from_dict(config.to_dict())

    assert restored == config


def test_load_partial_file(tmp_path):
    path = tmp_path / "sim.json"
    path.write_text(json.dumps({"telemetry": {"reference_mass": 5.0}, "min_load_mass": 0.5}))

    config = load_config(path)

    assert config.telemetry.reference_mass == 5.0
    assert config.min_load_mass == 0.5
    # Unspecified values keep their defaults
    assert config.telemetry.smoothing_rate == 5.0
    assert config.solver.max_iterations == 15
    assert config.motion.approach_offset == [0.1, 0.0, 0.0]


def test_load_defaults():
    assert load_config() == SimulationConfig()
