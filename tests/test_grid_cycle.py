"""
tests/test_grid_cycle.py - Tests for the Grid State Machine

Validates:
- Trajectory has exactly `steps` states, trajectory[0] is the initial state
- Recorded positions never leave the grid, for every variant
- Schedule entries fire once, in schedule order, with non-decreasing steps
- Runs are bit-reproducible
- Invalid configs fail fast; batches continue past them
- End-to-end reference run (5x7, 200003 steps, four inversions)
"""

import pytest

from grid import (
    RunConfig,
    ScheduleEntry,
    InversionKind,
    VariantKind,
    ConfigError,
    SCENARIO_REFERENCE,
    SCENARIO_SHORT,
    SCENARIO_WIDE,
    MANDATORY_SCENARIOS,
    make_reference_config,
    validate_config,
    run_simulation,
    run_batch,
    initialize_state,
    generate_report,
)


ALL_VARIANTS = list(VariantKind)


def small_config(**overrides) -> RunConfig:
    params = dict(size_x=5, size_y=7, x0=1, y0=1, vx0=1, vy0=1, phase0=0.0,
                  steps=100, multiplier=7, mod=1000003)
    params.update(overrides)
    return RunConfig(**params)


# =============================================================================
# TRAJECTORY SHAPE
# =============================================================================

class TestTrajectoryShape:
    """Trajectory length and initial state."""

    @pytest.mark.parametrize("variant", ALL_VARIANTS)
    def test_length_equals_steps(self, variant):
        result = run_simulation(small_config(steps=137), variant)
        assert len(result.trajectory) == 137

    def test_first_state_is_initial(self):
        config = small_config(x0=3, y0=2, vx0=-2, vy0=1, phase0=0.25)
        result = run_simulation(config, VariantKind.REFLECT)
        first = result.trajectory[0]
        assert (first.x, first.y, first.vx, first.vy, first.phase) == (3, 2, -2, 1, 0.25)
        assert first == initialize_state(config)

    def test_single_step_run(self):
        result = run_simulation(small_config(steps=1))
        assert len(result.trajectory) == 1
        assert len(result.events) == 0

    def test_state_steps_are_indices(self):
        result = run_simulation(small_config(steps=50))
        assert [s.step for s in result.trajectory] == list(range(50))

    def test_known_reflection(self):
        """(1,1) moving (1,1) on 5x7 first overshoots x at index 5."""
        result = run_simulation(small_config(steps=6), VariantKind.REFLECT)
        positions = [(s.x, s.y) for s in result.trajectory]
        assert positions == [(1, 1), (2, 2), (3, 3), (4, 4), (5, 5), (4, 6)]

        assert len(result.events) == 1
        event = result.events[0]
        assert event.step == 5
        assert event.event_type == "REFLECT"
        assert (event.x, event.y, event.vx, event.vy) == (4, 6, -1, 1)

    def test_sticky_presses_against_wall(self):
        config = small_config(x0=4, y0=1, vx0=1, vy0=0, steps=10)
        result = run_simulation(config, VariantKind.STICKY)
        assert [e.step for e in result.events] == list(range(2, 10))
        assert all(s.x == 5 for s in result.trajectory[1:])
        assert all(s.vx == 1 for s in result.trajectory)


# =============================================================================
# BOUNDS
# =============================================================================

class TestBounds:
    """Recorded positions stay inside [0, size_x] x [0, size_y]."""

    @pytest.mark.parametrize("variant", ALL_VARIANTS)
    @pytest.mark.parametrize("config", [SCENARIO_SHORT, SCENARIO_WIDE], ids=["short", "wide"])
    def test_positions_inside_grid(self, variant, config):
        result = run_simulation(config, variant)
        for s in result.trajectory:
            assert 0 <= s.x <= config.size_x, f"x={s.x} outside grid at step {s.step}"
            assert 0 <= s.y <= config.size_y, f"y={s.y} outside grid at step {s.step}"

    @pytest.mark.parametrize("variant", ALL_VARIANTS)
    def test_velocity_larger_than_grid(self, variant):
        config = small_config(vx0=13, vy0=-17, steps=200)
        result = run_simulation(config, variant)
        for s in result.trajectory:
            assert 0 <= s.x <= 5 and 0 <= s.y <= 7

    def test_phase_in_unit_interval(self):
        result = run_simulation(small_config(phase0=0.123, steps=500))
        assert all(0.0 <= s.phase < 1.0 for s in result.trajectory)


# =============================================================================
# SCHEDULE
# =============================================================================

class TestScheduleFiring:
    """Inversion entries fire exactly once, in order."""

    def test_reference_schedule_fires_in_order(self):
        config = make_reference_config(steps=100)
        result = run_simulation(config)
        inversions = result.events.inversion_events()

        assert [e.step for e in inversions] == [20, 40, 60, 80]
        assert [e.event_type for e in inversions] == [
            "INVERSION:GEOM", "INVERSION:SPHERE", "INVERSION:OBSERVER", "INVERSION:CAUSAL",
        ]
        assert result.statistics["final_kind"] == "CAUSAL"
        assert result.statistics["last_inversion_step"] == 80

    def test_equal_steps_keep_listed_order(self):
        schedule = (ScheduleEntry(10, InversionKind.SPHERE), ScheduleEntry(10, InversionKind.GEOM))
        result = run_simulation(small_config(inversion_schedule=schedule))
        types = [e.event_type for e in result.events.inversion_events()]
        assert types == ["INVERSION:SPHERE", "INVERSION:GEOM"]
        assert result.trajectory[10].inverted is InversionKind.GEOM

    def test_entry_at_step_zero_marks_first_state(self):
        schedule = (ScheduleEntry(0, InversionKind.OBSERVER),)
        result = run_simulation(small_config(inversion_schedule=schedule))
        assert result.trajectory[0].inverted is InversionKind.OBSERVER
        assert result.events[0].step == 0
        assert result.events[0].event_type == "INVERSION:OBSERVER"

    def test_entry_at_final_step_still_fires(self):
        schedule = (ScheduleEntry(100, InversionKind.CAUSAL),)
        result = run_simulation(small_config(inversion_schedule=schedule))
        inversions = result.events.inversion_events()
        assert len(inversions) == 1
        assert inversions[0].step == 100

    def test_inversion_event_precedes_boundary_event(self):
        """Index 5 both fires GEOM and crosses x = 5."""
        schedule = (ScheduleEntry(5, InversionKind.GEOM),)
        result = run_simulation(small_config(steps=6, inversion_schedule=schedule))
        types = [e.event_type for e in result.events]
        assert types == ["INVERSION:GEOM", "INVERSION_REFLECT"]
        # Inversion event records the trigger state (index 4)
        assert (result.events[0].x, result.events[0].y) == (5, 5)

    def test_event_steps_non_decreasing(self):
        result = run_simulation(SCENARIO_SHORT)
        steps = [e.step for e in result.events]
        assert steps == sorted(steps)

    def test_no_schedule_no_inversions(self):
        result = run_simulation(small_config())
        assert result.events.inversion_events() == []
        assert all(s.inverted is None for s in result.trajectory)


# =============================================================================
# DETERMINISM
# =============================================================================

class TestDeterminism:

    @pytest.mark.parametrize("variant", ALL_VARIANTS)
    def test_repeat_run_identical(self, variant):
        a = run_simulation(SCENARIO_WIDE, variant)
        b = run_simulation(SCENARIO_WIDE, variant)
        assert list(a.trajectory) == list(b.trajectory)
        assert list(a.events) == list(b.events)

    def test_zero_phase_stays_zero(self):
        result = run_simulation(small_config(phase0=0.0))
        assert {s.phase for s in result.trajectory} == {0.0}


# =============================================================================
# CONFIG ERRORS
# =============================================================================

class TestConfigErrors:
    """Invalid configs are rejected before stepping."""

    @pytest.mark.parametrize("overrides,field", [
        ({"size_x": 0}, "size_x"),
        ({"size_y": -3}, "size_y"),
        ({"steps": 0}, "steps"),
        ({"x0": 6}, "x0"),
        ({"y0": -1}, "y0"),
        ({"phase0": 1.0}, "phase0"),
        ({"mod": 0}, "mod"),
    ])
    def test_field_named(self, overrides, field):
        with pytest.raises(ConfigError) as exc_info:
            run_simulation(small_config(**overrides))
        assert exc_info.value.field == field

    def test_non_monotonic_schedule(self):
        schedule = ((50, "GEOM"), (10, "SPHERE"))
        with pytest.raises(ConfigError) as exc_info:
            run_simulation(small_config(inversion_schedule=schedule))
        assert exc_info.value.field == "inversion_schedule[1].step"

    @pytest.mark.parametrize("schedule,field", [
        (((10,),), "inversion_schedule[0]"),
        (((10, "GEOM", 3),), "inversion_schedule[0]"),
        (42, "inversion_schedule"),
        ("GEOM", "inversion_schedule"),
    ])
    def test_malformed_schedule_shape(self, schedule, field):
        with pytest.raises(ConfigError) as exc_info:
            small_config(inversion_schedule=schedule)
        assert exc_info.value.field == field

    def test_unknown_kind(self):
        with pytest.raises(ConfigError) as exc_info:
            run_simulation(small_config(inversion_schedule=((10, "BOGUS"),)))
        assert exc_info.value.field == "inversion_schedule[0].kind"

    def test_schedule_past_steps(self):
        with pytest.raises(ConfigError) as exc_info:
            run_simulation(small_config(inversion_schedule=((101, "GEOM"),)))
        assert exc_info.value.field == "inversion_schedule[0].step"

    def test_config_error_is_value_error(self):
        with pytest.raises(ValueError):
            run_simulation(small_config(size_x=0))

    def test_batch_continues_past_bad_config(self):
        configs = [small_config(steps=20), small_config(x0=99), small_config(steps=30)]
        results, rejected = run_batch(configs)

        assert results[1] is None
        assert len(results[0].trajectory) == 20
        assert len(results[2].trajectory) == 30
        assert len(rejected) == 1
        assert rejected[0]["receipt_type"] == "config_rejected"
        assert rejected[0]["field"] == "x0"
        assert rejected[0]["run_label"] == "batch[1]"


# =============================================================================
# END-TO-END REFERENCE RUN
# =============================================================================

class TestReferenceRun:
    """5x7 grid, 200003 steps, x7 mod 1000003, inversions at 20/40/60/80 %."""

    @pytest.fixture(scope="class")
    def result(self):
        return run_simulation(SCENARIO_REFERENCE, VariantKind.INVERSION_REFLECT)

    def test_trajectory_length(self, result):
        assert len(result.trajectory) == 200003

    def test_four_scheduler_events(self, result):
        inversions = result.events.inversion_events()
        assert len(inversions) == 4
        assert [e.step for e in inversions] == [40000, 80001, 120001, 160002]
        kinds = {e.event_type for e in inversions}
        assert len(kinds) == 4, "each inversion should use a distinct kind"

    def test_boundary_events_interleaved(self, result):
        boundary = result.events.boundary_events()
        assert len(boundary) > 0
        assert all(e.event_type == "INVERSION_REFLECT" for e in boundary)
        steps = [e.step for e in result.events]
        assert all(a <= b for a, b in zip(steps, steps[1:]))

    def test_report(self, result):
        report = generate_report(result)
        assert "Variant: inversion_reflect" in report
        assert "Steps: 200003" in report
        assert "inversion: 4" in report


# =============================================================================
# SCENARIO PRESETS
# =============================================================================

class TestScenarioPresets:

    @pytest.mark.parametrize("name", sorted(MANDATORY_SCENARIOS))
    def test_presets_valid(self, name):
        config = MANDATORY_SCENARIOS[name]
        assert validate_config(config) is config

    def test_no_schedule_preset(self):
        assert MANDATORY_SCENARIOS["NO_SCHEDULE"].inversion_schedule == ()
        assert MANDATORY_SCENARIOS["REFERENCE"].steps == 200003

    def test_config_dict_round_trip(self):
        for config in MANDATORY_SCENARIOS.values():
            assert RunConfig.from_dict(config.to_dict()) == config
