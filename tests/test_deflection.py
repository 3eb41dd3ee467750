"""
Test suite for the deflection strategies and the comparison ranking.
"""

import pytest

from impact_api.deflection import (
    KINETIC_IMPACTOR,
    MISSIONS,
    STRATEGY_PRIORITY,
    DeflectionRequest,
    DeflectionResult,
    SafetyLevel,
    Strategy,
    compare,
    evaluate,
    evaluate_request,
    safety_level,
)
from impact_api.errors import InvalidInput, OutOfRangeInput, UnsupportedStrategy
from impact_api.impact_model import AIRBURST_FIXTURES, EntryState, MeteoroidParameters, compute_entry_state
from impact_api.materials import Material

CHELYABINSK = AIRBURST_FIXTURES["chelyabinsk"]
BIG_IRON = MeteoroidParameters(1000.0, 20_000.0, 90.0, Material.IRON)


def result(strategy, p, cost):
    return DeflectionResult(
        strategy=strategy, delta_v_cm_s=1.0, miss_distance_km=1.0, miss_distance_earth_radii=1.0 / 6371.0,
        mission_cost_usd_b=cost, success_probability_pct=p, safety_level=safety_level(p),
    )


class TestImpulsiveStrategies:

    def test_kinetic_impactor_momentum_relation(self):
        state = compute_entry_state(CHELYABINSK)
        res = evaluate(CHELYABINSK, state, Strategy.KINETIC_IMPACTOR, 5.0)
        c = KINETIC_IMPACTOR
        expected_ms = c.impactor_mass_kg * c.impactor_velocity_ms * c.beta / state.mass_kg
        assert res.delta_v_cm_s == pytest.approx(100.0 * expected_ms)

    @pytest.mark.parametrize("strategy", [Strategy.KINETIC_IMPACTOR, Strategy.NUCLEAR_STANDOFF,
                                          Strategy.LASER_ABLATION])
    def test_delta_v_inversely_proportional_to_mass(self, strategy):
        light = EntryState(mass_kg=1.0e9, kinetic_energy_initial_j=1.0, momentum_kg_ms=1.0)
        heavy = EntryState(mass_kg=2.0e9, kinetic_energy_initial_j=1.0, momentum_kg_ms=1.0)
        params = MeteoroidParameters(50.0, 20_000.0, 45.0, Material.ROCK)
        dv_light = evaluate(params, light, strategy, 5.0).delta_v_cm_s
        dv_heavy = evaluate(params, heavy, strategy, 5.0).delta_v_cm_s
        assert dv_light == pytest.approx(2.0 * dv_heavy, rel=1e-9)

    def test_miss_distance_in_earth_radii(self):
        res = evaluate(CHELYABINSK, compute_entry_state(CHELYABINSK), Strategy.NUCLEAR_STANDOFF, 3.0)
        assert res.miss_distance_earth_radii == pytest.approx(res.miss_distance_km / 6371.0)

    def test_negligible_delta_v_fails(self):
        res = evaluate(BIG_IRON, compute_entry_state(BIG_IRON), Strategy.KINETIC_IMPACTOR, 1.0)
        assert res.success_probability_pct < 0.01
        assert res.safety_level is SafetyLevel.FAILED


class TestContinuousStrategies:

    def test_tractor_pull_independent_of_density(self):
        rock = MeteoroidParameters(50.0, 20_000.0, 45.0, Material.ROCK)
        iron = MeteoroidParameters(50.0, 20_000.0, 45.0, Material.IRON)
        dv_rock = evaluate(rock, compute_entry_state(rock), Strategy.GRAVITY_TRACTOR, 6.0).delta_v_cm_s
        dv_iron = evaluate(iron, compute_entry_state(iron), Strategy.GRAVITY_TRACTOR, 6.0).delta_v_cm_s
        assert dv_rock == pytest.approx(dv_iron)
        assert dv_rock > 0.0

    def test_no_time_to_operate(self):
        # transit time of the tractor equals the whole lead time
        assert MISSIONS[Strategy.GRAVITY_TRACTOR].transit_years == 1.0
        res = evaluate(CHELYABINSK, compute_entry_state(CHELYABINSK), Strategy.GRAVITY_TRACTOR, 1.0)
        assert res.delta_v_cm_s == 0.0
        assert res.miss_distance_km == 0.0
        assert res.success_probability_pct == 0.0
        assert res.safety_level is SafetyLevel.FAILED

    def test_displacement_grows_faster_than_linear(self):
        state = compute_entry_state(CHELYABINSK)
        short = evaluate(CHELYABINSK, state, Strategy.LASER_ABLATION, 3.0)
        long = evaluate(CHELYABINSK, state, Strategy.LASER_ABLATION, 6.0)
        assert long.miss_distance_km > 2.0 * short.miss_distance_km


class TestSuccessProbability:

    @pytest.mark.parametrize("strategy", list(Strategy))
    def test_monotone_in_lead_time(self, strategy):
        state = compute_entry_state(CHELYABINSK)
        probs = [evaluate(CHELYABINSK, state, strategy, lead).success_probability_pct for lead in (1, 2, 5, 10)]
        assert probs == sorted(probs)

    @pytest.mark.parametrize("strategy", list(Strategy))
    def test_bounded_by_reliability(self, strategy):
        state = compute_entry_state(CHELYABINSK)
        res = evaluate(CHELYABINSK, state, strategy, 10.0)
        assert 0.0 <= res.success_probability_pct <= 100.0 * MISSIONS[strategy].base_reliability

    def test_kinetic_impactor_on_chelyabinsk(self):
        state = compute_entry_state(CHELYABINSK)
        assert evaluate(CHELYABINSK, state, Strategy.KINETIC_IMPACTOR, 5.0).safety_level is SafetyLevel.MARGINAL
        assert evaluate(CHELYABINSK, state, Strategy.KINETIC_IMPACTOR, 10.0).safety_level is SafetyLevel.SAFE

    @pytest.mark.parametrize("p, level", [
        (100.0, SafetyLevel.SAFE),
        (90.0, SafetyLevel.SAFE),
        (89.99, SafetyLevel.MARGINAL),
        (60.0, SafetyLevel.MARGINAL),
        (59.99, SafetyLevel.UNSAFE),
        (30.0, SafetyLevel.UNSAFE),
        (29.99, SafetyLevel.FAILED),
        (0.0, SafetyLevel.FAILED),
    ])
    def test_safety_thresholds(self, p, level):
        assert safety_level(p) is level

    def test_deterministic(self):
        state = compute_entry_state(CHELYABINSK)
        for strategy in Strategy:
            assert evaluate(CHELYABINSK, state, strategy, 4.0) == evaluate(CHELYABINSK, state, strategy, 4.0)


class TestCost:

    def test_small_object_pays_base_cost(self):
        res = evaluate(CHELYABINSK, compute_entry_state(CHELYABINSK), Strategy.KINETIC_IMPACTOR, 5.0)
        mission = MISSIONS[Strategy.KINETIC_IMPACTOR]
        assert res.mission_cost_usd_b == pytest.approx(mission.fixed_cost_usd_b + mission.variable_cost_usd_b)

    @pytest.mark.parametrize("strategy", list(Strategy))
    def test_bigger_objects_cost_more(self, strategy):
        small = evaluate(CHELYABINSK, compute_entry_state(CHELYABINSK), strategy, 5.0)
        large = evaluate(BIG_IRON, compute_entry_state(BIG_IRON), strategy, 5.0)
        assert large.mission_cost_usd_b > small.mission_cost_usd_b


class TestValidation:

    @pytest.mark.parametrize("lead", [0.0, 0.5, 10.5, float("nan")])
    def test_lead_time_out_of_range(self, lead):
        with pytest.raises(OutOfRangeInput) as exc:
            evaluate(CHELYABINSK, compute_entry_state(CHELYABINSK), Strategy.KINETIC_IMPACTOR, lead)
        assert exc.value.field == "lead_time_years"

    def test_unknown_strategy(self):
        with pytest.raises(UnsupportedStrategy):
            evaluate(CHELYABINSK, compute_entry_state(CHELYABINSK), "ion_beam", 5.0)

    def test_strategy_tags_parsed(self):
        res = evaluate(CHELYABINSK, compute_entry_state(CHELYABINSK), "Laser_Ablation", 5.0)
        assert res.strategy is Strategy.LASER_ABLATION

    def test_request_rejects_invalid_meteoroid(self):
        with pytest.raises(InvalidInput):
            evaluate_request(DeflectionRequest(MeteoroidParameters(0.0, 20_000.0, 45.0), 5.0))


class TestComparison:

    def test_all_strategies_ranked(self):
        report = evaluate_request(DeflectionRequest(CHELYABINSK, 5.0, "all"))
        assert [r.strategy for r in report.results] == list(STRATEGY_PRIORITY)
        ranking = report.comparison.ranking
        assert [r.rank for r in ranking] == [1, 2, 3, 4]
        assert {r.strategy for r in ranking} == set(Strategy)
        p_by_strategy = {r.strategy: r.success_probability_pct for r in report.results}
        probabilities = [p_by_strategy[r.strategy] for r in ranking]
        assert probabilities == sorted(probabilities, reverse=True)
        assert report.comparison.best is ranking[0].strategy
        assert report.comparison.best is Strategy.KINETIC_IMPACTOR

    def test_single_strategy_has_no_comparison(self):
        report = evaluate_request(DeflectionRequest(CHELYABINSK, 5.0, Strategy.NUCLEAR_STANDOFF))
        assert len(report.results) == 1
        assert report.comparison is None
        assert "comparison" not in report.to_dict()

    def test_probability_dominates_cost(self):
        ranked = compare([result(Strategy.KINETIC_IMPACTOR, 70.0, 0.1),
                          result(Strategy.LASER_ABLATION, 80.0, 5.0)])
        assert ranked.best is Strategy.LASER_ABLATION

    def test_small_probability_gap_beats_large_cost_gap(self):
        ranked = compare([result(Strategy.KINETIC_IMPACTOR, 50.0, 0.1),
                          result(Strategy.NUCLEAR_STANDOFF, 50.004, 10.0)])
        assert ranked.best is Strategy.NUCLEAR_STANDOFF
        assert [r.rank for r in ranked.ranking] == [1, 2]

    def test_cheaper_wins_tie(self):
        ranked = compare([result(Strategy.KINETIC_IMPACTOR, 50.0, 2.0),
                          result(Strategy.NUCLEAR_STANDOFF, 50.0, 1.0)])
        assert ranked.best is Strategy.NUCLEAR_STANDOFF

    def test_priority_breaks_full_tie(self):
        ranked = compare([result(Strategy.LASER_ABLATION, 0.0, 1.0),
                          result(Strategy.NUCLEAR_STANDOFF, 0.0, 1.0),
                          result(Strategy.GRAVITY_TRACTOR, 0.0, 1.0)])
        assert [r.strategy for r in ranked.ranking] == [
            Strategy.GRAVITY_TRACTOR, Strategy.NUCLEAR_STANDOFF, Strategy.LASER_ABLATION]

    def test_empty_input(self):
        with pytest.raises(InvalidInput):
            compare([])
