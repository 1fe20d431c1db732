"""
tests/test_variants.py - Tests for Variant Strategies and the Inversion Scheduler

Validates:
- Per-axis boundary rules (reflect, clamp, sticky, center inversion)
- Variant dispatch and per-kind transform tables
- Phase law on integer residues
- Scheduler ">=" semantics, single firing, listed order for equal steps
"""

import pytest

from grid import (
    GridState,
    RunConfig,
    ScheduleEntry,
    InversionKind,
    VariantKind,
    InversionScheduler,
    DEFAULT_BOUNDARY_TRANSFORMS,
    advance_phase,
    axis_rule,
    reflect_axis,
    clamp_axis,
    sticky_axis,
    center_inversion_axis,
    boundary_transforms,
    run_simulation,
    step,
)

CONFIG = RunConfig(size_x=5, size_y=7, steps=100, multiplier=7, mod=1000003)


# =============================================================================
# AXIS RULES
# =============================================================================

class TestAxisRules:

    def test_reflect_high_wall(self):
        assert reflect_axis(6, 1, 5) == (4, -1)

    def test_reflect_low_wall(self):
        assert reflect_axis(-2, -3, 5) == (2, 3)

    def test_reflect_overshoot_beyond_grid_clamped(self):
        assert reflect_axis(13, 8, 5) == (0, -8)

    def test_clamp(self):
        assert clamp_axis(7, 2, 5) == (5, -2)
        assert clamp_axis(-1, -1, 5) == (0, 1)

    def test_sticky_keeps_velocity(self):
        assert sticky_axis(7, 2, 5) == (5, 2)
        assert sticky_axis(-4, -4, 5) == (0, -4)

    def test_center_inversion_high(self):
        """c = 5, h = 5: 14 -> 5 + 25/9 = 7.78, rounded toward center."""
        assert center_inversion_axis(14, 4, 10) == (7, -4)

    def test_center_inversion_low(self):
        """-4 -> 5 - 25/9 = 2.22, rounded toward center."""
        assert center_inversion_axis(-4, -4, 10) == (3, 4)

    def test_center_inversion_differs_from_reflect(self):
        assert center_inversion_axis(14, 4, 10) != reflect_axis(14, 4, 10)


# =============================================================================
# DISPATCH
# =============================================================================

class TestDispatch:

    def test_fixed_variants(self):
        assert axis_rule(VariantKind.REFLECT, InversionKind.GEOM) is reflect_axis
        assert axis_rule(VariantKind.CLAMP, None) is clamp_axis
        assert axis_rule(VariantKind.STICKY, None) is sticky_axis

    def test_inversion_reflect_before_any_inversion(self):
        assert axis_rule(VariantKind.INVERSION_REFLECT, None) is reflect_axis

    @pytest.mark.parametrize("kind", list(InversionKind))
    def test_inversion_reflect_uses_default_table(self, kind):
        assert axis_rule(VariantKind.INVERSION_REFLECT, kind) is center_inversion_axis
        assert DEFAULT_BOUNDARY_TRANSFORMS[kind] is center_inversion_axis

    def test_override_table(self):
        table = boundary_transforms({InversionKind.SPHERE: clamp_axis})
        assert axis_rule(VariantKind.INVERSION_REFLECT, InversionKind.SPHERE, table) is clamp_axis
        assert axis_rule(VariantKind.INVERSION_REFLECT, InversionKind.GEOM, table) is center_inversion_axis
        assert DEFAULT_BOUNDARY_TRANSFORMS[InversionKind.SPHERE] is center_inversion_axis

    def test_tables_read_only(self):
        with pytest.raises(TypeError):
            DEFAULT_BOUNDARY_TRANSFORMS[InversionKind.GEOM] = clamp_axis
        with pytest.raises(TypeError):
            boundary_transforms()[InversionKind.GEOM] = clamp_axis

    def test_override_rejects_unknown_kind(self):
        with pytest.raises(ValueError):
            boundary_transforms({"SPHERE": clamp_axis})

    def test_override_scoped_to_one_run(self):
        """GEOM active from index 0; x first overshoots (6 on a 0..5 axis) at index 5."""
        config = RunConfig(size_x=5, size_y=7, x0=1, y0=1, vx0=1, vy0=1, steps=20,
                           inversion_schedule=((0, "GEOM"),))
        before = run_simulation(config, VariantKind.INVERSION_REFLECT)
        clamped = run_simulation(config, VariantKind.INVERSION_REFLECT,
                                 boundary_transforms({InversionKind.GEOM: clamp_axis}))
        after = run_simulation(config, VariantKind.INVERSION_REFLECT)

        # 2.5 + 6.25 / 3.5 = 4.29, rounded toward the center
        assert before.trajectory[5].x == 4
        assert clamped.trajectory[5].x == 5
        assert list(after.trajectory) == list(before.trajectory)


# =============================================================================
# STEP CONTRACT
# =============================================================================

class TestStep:

    def test_interior_move_no_event(self):
        state = GridState(x=3, y=3, vx=1, vy=1, phase=0.0, step=3)
        next_state, event = step(state, CONFIG, VariantKind.REFLECT, None)
        assert (next_state.x, next_state.y, next_state.step) == (4, 4, 4)
        assert event is None

    def test_boundary_event_records_post_rule_state(self):
        state = GridState(x=5, y=5, vx=1, vy=1, phase=1 / 1000003, step=0)
        next_state, event = step(state, CONFIG, VariantKind.REFLECT, None)
        assert (next_state.x, next_state.y, next_state.vx, next_state.vy) == (4, 6, -1, 1)
        assert event.event_type == "REFLECT"
        assert event.step == 1
        assert (event.x, event.y, event.vx, event.vy) == (4, 6, -1, 1)
        assert event.phase_before == state.phase
        assert event.phase_after == next_state.phase

    def test_both_axes_one_event(self):
        state = GridState(x=5, y=7, vx=1, vy=1, phase=0.0)
        next_state, event = step(state, CONFIG, VariantKind.CLAMP, None)
        assert (next_state.x, next_state.y, next_state.vx, next_state.vy) == (5, 7, -1, -1)
        assert event.event_type == "CLAMP"

    def test_active_kind_recorded(self):
        state = GridState(x=1, y=1, vx=1, vy=1, phase=0.0)
        next_state, _ = step(state, CONFIG, VariantKind.INVERSION_REFLECT, InversionKind.CAUSAL)
        assert next_state.inverted is InversionKind.CAUSAL


# =============================================================================
# PHASE LAW
# =============================================================================

class TestPhaseLaw:

    def test_zero_is_fixed_point(self):
        assert advance_phase(0.0, CONFIG) == 0.0

    def test_residue_multiplied(self):
        assert advance_phase(1 / 1000003, CONFIG) == 7 / 1000003

    def test_wraps_modulo(self):
        phase = 200000 / 1000003
        assert advance_phase(phase, CONFIG) == pytest.approx((1400000 % 1000003) / 1000003)

    def test_stays_in_unit_interval(self):
        phase = 0.123
        for _ in range(1000):
            phase = advance_phase(phase, CONFIG)
            assert 0.0 <= phase < 1.0


# =============================================================================
# SCHEDULER
# =============================================================================

class TestInversionScheduler:

    def schedule(self):
        return [ScheduleEntry(5, InversionKind.GEOM), ScheduleEntry(10, InversionKind.SPHERE)]

    def test_nothing_before_first_step(self):
        scheduler = InversionScheduler(self.schedule())
        assert scheduler.advance(3) == []
        assert scheduler.active_kind is None
        assert scheduler.pending == 2

    def test_skipped_index_still_fires(self):
        scheduler = InversionScheduler(self.schedule())
        fired = scheduler.advance(12)
        assert [e.kind for e in fired] == [InversionKind.GEOM, InversionKind.SPHERE]
        assert scheduler.active_kind is InversionKind.SPHERE
        assert scheduler.exhausted

    def test_each_entry_fires_once(self):
        scheduler = InversionScheduler(self.schedule())
        total = []
        for i in range(20):
            total.extend(scheduler.advance(i))
        assert len(total) == 2
        assert scheduler.advance(50) == []
        assert scheduler.last_fired_step() == 10

    def test_equal_steps_in_listed_order(self):
        schedule = [ScheduleEntry(4, InversionKind.CAUSAL), ScheduleEntry(4, InversionKind.OBSERVER)]
        scheduler = InversionScheduler(schedule)
        fired = scheduler.advance(4)
        assert [e.kind for e in fired] == [InversionKind.CAUSAL, InversionKind.OBSERVER]
        assert scheduler.active_kind is InversionKind.OBSERVER

    def test_peek(self):
        scheduler = InversionScheduler(self.schedule())
        assert scheduler.peek().step == 5
        scheduler.advance(5)
        assert scheduler.peek().step == 10
        scheduler.advance(10)
        assert scheduler.peek() is None
