"""
tests/test_engine_config.py - Tests for Engine Settings Loading

Validates:
- Defaults match the engine constants
- JSON and YAML loading
- Self-healing with UserWarning; strict mode raises
- RunConfig files (camelCase and snake_case) validated on load
"""

import json
from pathlib import Path

import pytest
import yaml

import engine_config
from engine_config import EngineSettings, load, load_run_config
from grid import ConfigError, InversionKind


def write_json(path: Path, data) -> Path:
    path.write_text(json.dumps(data))
    return path


class TestDefaults:

    def test_defaults(self):
        s = EngineSettings()
        assert s.leaderboard_capacity == 1000
        assert s.spectral_capacity == 1000
        assert s.spectral_cadence == 10
        assert s.n_bots == 8
        assert s.band_threshold == 5
        assert s.spectral_threshold == 0.5
        assert s.counter_path == "run_counter.txt"

    def test_resolve_anchors_relative_paths(self, tmp_path):
        s = EngineSettings().resolve(tmp_path)
        assert Path(s.runs_dir) == tmp_path / "runs"
        assert Path(s.counter_path) == tmp_path / "run_counter.txt"

    def test_resolve_keeps_absolute(self, tmp_path):
        absolute = str(tmp_path / "elsewhere")
        s = EngineSettings(runs_dir=absolute).resolve("/somewhere")
        assert s.runs_dir == absolute


class TestLoad:

    def test_load_json(self, tmp_path):
        path = write_json(tmp_path / "settings.json", {"n_bots": 3, "seed": 11, "runs_dir": "out"})
        s = load(path)
        assert s.n_bots == 3
        assert s.seed == 11
        assert s.runs_dir == "out"
        assert s.leaderboard_capacity == 1000

    def test_load_yaml(self, tmp_path):
        path = tmp_path / "settings.yaml"
        path.write_text(yaml.safe_dump({"spectral_cadence": 5, "max_grid": 12}))
        s = load(path)
        assert s.spectral_cadence == 5
        assert s.max_grid == 12

    def test_empty_yaml_is_defaults(self, tmp_path):
        path = tmp_path / "settings.yml"
        path.write_text("")
        assert load(path) == EngineSettings()

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load(tmp_path / "absent.json")

    def test_non_mapping(self, tmp_path):
        path = write_json(tmp_path / "settings.json", [1, 2, 3])
        with pytest.raises(ValueError):
            load(path)


class TestSelfHealing:

    def test_out_of_range_clamped(self, tmp_path):
        path = write_json(tmp_path / "s.json", {"leaderboard_capacity": 0, "spectral_threshold": 1.5})
        with pytest.warns(UserWarning, match="Clamped"):
            s = load(path)
        assert s.leaderboard_capacity == 1
        assert s.spectral_threshold == 1.0

    def test_unknown_field_dropped(self, tmp_path):
        path = write_json(tmp_path / "s.json", {"n_bots": 2, "colour": "blue"})
        with pytest.warns(UserWarning, match="unknown field"):
            s = load(path)
        assert s.n_bots == 2
        assert not hasattr(s, "colour")

    def test_wrong_type_defaulted(self, tmp_path):
        path = write_json(tmp_path / "s.json", {"n_bots": "eight"})
        with pytest.warns(UserWarning, match="Invalid type"):
            s = load(path)
        assert s.n_bots == 8

    def test_inverted_bounds_raised(self, tmp_path):
        path = write_json(tmp_path / "s.json", {"min_steps": 500, "max_steps": 100})
        with pytest.warns(UserWarning, match="Raised max_steps"):
            s = load(path)
        assert s.min_steps == 500
        assert s.max_steps == 500

    def test_strict_raises(self, tmp_path):
        path = write_json(tmp_path / "s.json", {"leaderboard_capacity": 0})
        with pytest.raises(ValueError, match="validation failed"):
            load(path, strict=True)

    def test_valid_input_no_warning(self, recwarn):
        engine_config.from_dict({"n_bots": 4})
        assert not [w for w in recwarn if issubclass(w.category, UserWarning)]


class TestLoadRunConfig:

    def test_camel_case(self, tmp_path):
        path = write_json(tmp_path / "run.json", {
            "sizeX": 9, "sizeY": 4, "x0": 2, "y0": 3, "vx0": -1, "vy0": 2,
            "phase0": 0.0, "steps": 50, "multiplier": 3, "mod": 1000003,
            "inversionSchedule": [{"step": 10, "kind": "GEOM"}, {"step": 30, "kind": "CAUSAL"}],
        })
        config = load_run_config(path)
        assert (config.size_x, config.size_y, config.steps) == (9, 4, 50)
        assert [e.kind for e in config.inversion_schedule] == [InversionKind.GEOM, InversionKind.CAUSAL]

    def test_snake_case_yaml(self, tmp_path):
        path = tmp_path / "run.yaml"
        path.write_text(yaml.safe_dump({"size_x": 6, "size_y": 6, "steps": 40, "x0": 0, "y0": 6}))
        config = load_run_config(path)
        assert config.size_x == 6
        assert config.y0 == 6

    def test_invalid_rejected(self, tmp_path):
        path = write_json(tmp_path / "run.json", {"sizeX": 5, "x0": 9})
        with pytest.raises(ConfigError) as exc_info:
            load_run_config(path)
        assert exc_info.value.field == "x0"

    @pytest.mark.parametrize("schedule,field", [
        ([[10]], "inversion_schedule[0]"),
        ([{"step": 10, "kind": "GEOM"}, 7], "inversion_schedule[1]"),
        (5, "inversion_schedule"),
        ("GEOM", "inversion_schedule"),
        ({"step": 10, "kind": "GEOM"}, "inversion_schedule"),
    ])
    def test_malformed_schedule_names_field(self, tmp_path, schedule, field):
        path = write_json(tmp_path / "run.json", {
            "sizeX": 5, "sizeY": 7, "steps": 100, "inversionSchedule": schedule,
        })
        with pytest.raises(ConfigError) as exc_info:
            load_run_config(path)
        assert exc_info.value.field == field

    def test_to_dict_round_trip(self, tmp_path):
        from grid import SCENARIO_WIDE
        path = write_json(tmp_path / "run.json", SCENARIO_WIDE.to_dict())
        assert load_run_config(path) == SCENARIO_WIDE
