from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from math import ceil, exp, isfinite, sqrt
from typing import Callable, Sequence

from .errors import InvalidInput, NumericDivergence, OutOfRangeInput, UnsupportedStrategy
from .impact_model import (
    EntryState,
    MeteoroidParameters,
    R_EARTH_KM,
    compute_entry_state,
    validate_parameters,
)

logger = logging.getLogger(__name__)

# -----------------------------
# Constants
# -----------------------------
G_NEWTON = 6.674e-11              # m^3 / (kg s^2)
SECONDS_PER_DAY = 86_400.0
SECONDS_PER_YEAR = 365.25 * SECONDS_PER_DAY
LEAD_TIME_RANGE_YEARS = (1.0, 10.0)

# Success-probability curve:
#   p = 100 * R * (1 - exp(-miss_RE / MISS_SCALE)) * (1 - exp(-window_yr / LEAD_SCALE))
# window_yr = lead time minus transit time; p = 0 for an empty window.
SUCCESS_CURVE_VERSION = "2025.10"
MISS_SCALE_EARTH_RADII = 1.0
LEAD_TIME_SCALE_YEARS = 1.5

# Reported score = success pct - COST_TIEBREAK_WEIGHT * cost (billion USD); ranking itself is lexicographic
COST_TIEBREAK_WEIGHT = 1e-3
REFERENCE_DIAMETER_M = 100.0      # cost scaling reference size


class Strategy(str, Enum):
    # declaration order is the tie-break priority
    KINETIC_IMPACTOR = "kinetic_impactor"
    GRAVITY_TRACTOR = "gravity_tractor"
    NUCLEAR_STANDOFF = "nuclear_standoff"
    LASER_ABLATION = "laser_ablation"

    @classmethod
    def parse(cls, tag) -> "Strategy":
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).strip().lower())
        except ValueError:
            raise UnsupportedStrategy(tag, " | ".join(s.value for s in cls)) from None


STRATEGY_PRIORITY = tuple(Strategy)
ALL_STRATEGIES = "all"


class SafetyLevel(str, Enum):
    SAFE = "safe"
    MARGINAL = "marginal"
    UNSAFE = "unsafe"
    FAILED = "failed"


# Checked top-down; anything below the last threshold is FAILED.
SAFETY_THRESHOLDS_PCT = (
    (90.0, SafetyLevel.SAFE),
    (60.0, SafetyLevel.MARGINAL),
    (30.0, SafetyLevel.UNSAFE),
)


@dataclass(frozen=True)
class MissionConstants:
    transit_years: float          # launch to start of operations
    base_reliability: float       # max achievable success fraction
    fixed_cost_usd_b: float
    variable_cost_usd_b: float    # scaled by object size


@dataclass(frozen=True)
class ImpulseConstants:
    impactor_mass_kg: float
    impactor_velocity_ms: float
    beta: float                   # momentum-enhancement factor


# DART-class spacecraft; beta as measured on Dimorphos.
KINETIC_IMPACTOR = ImpulseConstants(impactor_mass_kg=600.0, impactor_velocity_ms=6_100.0, beta=3.6)
# ~1 Mt standoff burst, expressed as the blow-off mass and speed it drives.
NUCLEAR_STANDOFF = ImpulseConstants(impactor_mass_kg=2.0e5, impactor_velocity_ms=2_000.0, beta=2.0)

GRAVITY_TRACTOR_MASS_KG = 20_000.0
GRAVITY_TRACTOR_HOVER_RADII = 1.5
GRAVITY_TRACTOR_MIN_STANDOFF_M = 100.0
GRAVITY_TRACTOR_SPIN_UP_YEARS = 0.25

LASER_POWER_W = 5.0e5
LASER_COUPLING_N_PER_W = 8.0e-5
LASER_DUTY_CYCLE = 0.5
LASER_SPIN_UP_YEARS = 0.1

MISSIONS = {
    Strategy.KINETIC_IMPACTOR: MissionConstants(0.5, 0.92, 0.35, 0.15),
    Strategy.GRAVITY_TRACTOR:  MissionConstants(1.0, 0.97, 0.60, 0.30),
    Strategy.NUCLEAR_STANDOFF: MissionConstants(0.5, 0.85, 1.50, 0.50),
    Strategy.LASER_ABLATION:   MissionConstants(0.75, 0.80, 2.00, 0.80),
}


@dataclass(frozen=True)
class Maneuver:
    delta_v_ms: float
    displacement_m: float         # deviation accumulated by the time of the original impact


@dataclass(frozen=True)
class DeflectionResult:
    strategy: Strategy
    delta_v_cm_s: float
    miss_distance_km: float
    miss_distance_earth_radii: float
    mission_cost_usd_b: float
    success_probability_pct: float
    safety_level: SafetyLevel

    def to_dict(self) -> dict:
        return {
            "strategy": self.strategy.value,
            "delta_v_cm_s": self.delta_v_cm_s,
            "miss_distance_km": self.miss_distance_km,
            "miss_distance_earth_radii": self.miss_distance_earth_radii,
            "mission_cost_usd_b": self.mission_cost_usd_b,
            "success_probability_pct": self.success_probability_pct,
            "safety_level": self.safety_level.value,
        }


# ---------- delta-v models ----------
def _impulse(c: ImpulseConstants, mass_kg: float, window_s: float) -> Maneuver:
    """Single impulse on arrival: dv = m_i * v_i * beta / M, drift dv * window."""
    if window_s <= 0.0:
        return Maneuver(0.0, 0.0)
    dv = c.impactor_mass_kg * c.impactor_velocity_ms * c.beta / mass_kg
    return Maneuver(dv, dv * window_s)


def _integrate_thrust(accel_ms2: float, window_s: float, spin_up_s: float,
                      step_s: float = SECONDS_PER_DAY) -> Maneuver:
    """
    Continuous thrust over the operating window, trapezoidal steps of step_s.
    Acceleration ramps linearly from 0 to accel_ms2 during spin_up_s.
    """
    def accel(t):
        if spin_up_s <= 0.0:
            return accel_ms2
        return accel_ms2 * min(1.0, t / spin_up_s)

    v = x = 0.0
    n = ceil(window_s / step_s) if window_s > 0.0 else 0
    for i in range(n):
        t = i * step_s
        dt = min(step_s, window_s - t)
        v_next = v + 0.5 * (accel(t) + accel(t + dt)) * dt
        x += 0.5 * (v + v_next) * dt
        v = v_next
    return Maneuver(v, x)


def _kinetic_impactor_delta_v(meteoroid: MeteoroidParameters, state: EntryState, window_s: float) -> Maneuver:
    return _impulse(KINETIC_IMPACTOR, state.mass_kg, window_s)


def _nuclear_standoff_delta_v(meteoroid: MeteoroidParameters, state: EntryState, window_s: float) -> Maneuver:
    return _impulse(NUCLEAR_STANDOFF, state.mass_kg, window_s)


def _gravity_tractor_delta_v(meteoroid: MeteoroidParameters, state: EntryState, window_s: float) -> Maneuver:
    r = meteoroid.radius_m
    d = max(GRAVITY_TRACTOR_HOVER_RADII * r, r + GRAVITY_TRACTOR_MIN_STANDOFF_M)
    accel = G_NEWTON * GRAVITY_TRACTOR_MASS_KG / (d * d)
    return _integrate_thrust(accel, window_s, GRAVITY_TRACTOR_SPIN_UP_YEARS * SECONDS_PER_YEAR)


def _laser_ablation_delta_v(meteoroid: MeteoroidParameters, state: EntryState, window_s: float) -> Maneuver:
    thrust_n = LASER_COUPLING_N_PER_W * LASER_POWER_W * LASER_DUTY_CYCLE
    return _integrate_thrust(thrust_n / state.mass_kg, window_s, LASER_SPIN_UP_YEARS * SECONDS_PER_YEAR)


# ---------- cost & reliability ----------
def _size_scaled_cost(mission: MissionConstants, meteoroid: MeteoroidParameters) -> float:
    scale = sqrt(max(1.0, meteoroid.diameter_m / REFERENCE_DIAMETER_M))
    return mission.fixed_cost_usd_b + mission.variable_cost_usd_b * scale


def _saturating_reliability(mission: MissionConstants, miss_earth_radii: float, window_years: float) -> float:
    if window_years <= 0.0 or miss_earth_radii <= 0.0:
        return 0.0
    miss_term = 1.0 - exp(-miss_earth_radii / MISS_SCALE_EARTH_RADII)
    lead_term = 1.0 - exp(-window_years / LEAD_TIME_SCALE_YEARS)
    return 100.0 * mission.base_reliability * miss_term * lead_term


@dataclass(frozen=True)
class StrategyModel:
    mission: MissionConstants
    compute_delta_v: Callable[[MeteoroidParameters, EntryState, float], Maneuver]
    estimate_cost: Callable[[MissionConstants, MeteoroidParameters], float] = _size_scaled_cost
    reliability_curve: Callable[[MissionConstants, float, float], float] = _saturating_reliability


STRATEGIES: dict[Strategy, StrategyModel] = {
    Strategy.KINETIC_IMPACTOR: StrategyModel(MISSIONS[Strategy.KINETIC_IMPACTOR], _kinetic_impactor_delta_v),
    Strategy.GRAVITY_TRACTOR: StrategyModel(MISSIONS[Strategy.GRAVITY_TRACTOR], _gravity_tractor_delta_v),
    Strategy.NUCLEAR_STANDOFF: StrategyModel(MISSIONS[Strategy.NUCLEAR_STANDOFF], _nuclear_standoff_delta_v),
    Strategy.LASER_ABLATION: StrategyModel(MISSIONS[Strategy.LASER_ABLATION], _laser_ablation_delta_v),
}


def safety_level(success_probability_pct: float) -> SafetyLevel:
    for threshold, level in SAFETY_THRESHOLDS_PCT:
        if success_probability_pct >= threshold:
            return level
    return SafetyLevel.FAILED


def validate_lead_time(lead_time_years) -> float:
    lo, hi = LEAD_TIME_RANGE_YEARS
    if not (isinstance(lead_time_years, (int, float)) and isfinite(lead_time_years)
            and lo <= lead_time_years <= hi):
        raise OutOfRangeInput("lead_time_years", lead_time_years, f"[{lo:g}, {hi:g}] years")
    return float(lead_time_years)


def evaluate(meteoroid: MeteoroidParameters, entry_state: EntryState,
             strategy, lead_time_years: float) -> DeflectionResult:
    validate_parameters(meteoroid)
    lead = validate_lead_time(lead_time_years)
    kind = Strategy.parse(strategy)
    model = STRATEGIES[kind]

    window_years = max(0.0, lead - model.mission.transit_years)
    maneuver = model.compute_delta_v(meteoroid, entry_state, window_years * SECONDS_PER_YEAR)
    miss_km = maneuver.displacement_m / 1000.0
    miss_er = miss_km / R_EARTH_KM
    p = min(100.0, max(0.0, model.reliability_curve(model.mission, miss_er, window_years)))
    cost = model.estimate_cost(model.mission, meteoroid)

    if not all(isfinite(x) for x in (maneuver.delta_v_ms, miss_km, p, cost)):
        raise NumericDivergence(f"non-finite deflection result for {kind.value}")

    logger.debug("[deflect.%s] lead=%.2f yr window=%.2f yr dv=%.3e m/s miss=%.3g km p=%.1f%%",
                 kind.value, lead, window_years, maneuver.delta_v_ms, miss_km, p)
    return DeflectionResult(
        strategy=kind,
        delta_v_cm_s=maneuver.delta_v_ms * 100.0,
        miss_distance_km=miss_km,
        miss_distance_earth_radii=miss_er,
        mission_cost_usd_b=cost,
        success_probability_pct=p,
        safety_level=safety_level(p),
    )


# ---------- Comparison ----------
@dataclass(frozen=True)
class RankedStrategy:
    rank: int
    strategy: Strategy
    effectiveness_score: float


@dataclass(frozen=True)
class Comparison:
    ranking: tuple[RankedStrategy, ...]

    @property
    def best(self) -> Strategy:
        return self.ranking[0].strategy

    def to_dict(self) -> dict:
        return {
            "best": self.best.value,
            "ranking": [
                {"rank": r.rank, "strategy": r.strategy.value, "effectiveness_score": r.effectiveness_score}
                for r in self.ranking
            ],
        }


def effectiveness_score(result: DeflectionResult) -> float:
    return result.success_probability_pct - COST_TIEBREAK_WEIGHT * result.mission_cost_usd_b


def _rank_key(result: DeflectionResult) -> tuple[float, float, int]:
    return (-result.success_probability_pct, result.mission_cost_usd_b, STRATEGY_PRIORITY.index(result.strategy))


def compare(results: Sequence[DeflectionResult]) -> Comparison:
    """
    Rank by success probability, then lower cost, then STRATEGY_PRIORITY.
    The reported effectiveness score folds the first two into one number.
    """
    if not results:
        raise InvalidInput("results", list(results), "at least one DeflectionResult")
    ordered = sorted(results, key=_rank_key)
    return Comparison(tuple(
        RankedStrategy(rank=i, strategy=r.strategy, effectiveness_score=effectiveness_score(r))
        for i, r in enumerate(ordered, start=1)
    ))


# ---------- Request-level entry point ----------
@dataclass(frozen=True)
class DeflectionRequest:
    meteoroid: MeteoroidParameters
    lead_time_years: float
    strategy: Strategy | str = ALL_STRATEGIES


@dataclass(frozen=True)
class DeflectionReport:
    lead_time_years: float
    results: tuple[DeflectionResult, ...]
    comparison: Comparison | None = field(default=None)

    def to_dict(self) -> dict:
        out = {
            "lead_time_years": self.lead_time_years,
            "results": [r.to_dict() for r in self.results],
            "success_curve_version": SUCCESS_CURVE_VERSION,
        }
        if self.comparison is not None:
            out["comparison"] = self.comparison.to_dict()
        return out


def evaluate_request(request: DeflectionRequest) -> DeflectionReport:
    """One result per requested strategy; "all" also ranks the four strategies."""
    lead = validate_lead_time(request.lead_time_years)
    state = compute_entry_state(request.meteoroid)

    tag = request.strategy
    if isinstance(tag, str) and not isinstance(tag, Strategy) and tag.strip().lower() == ALL_STRATEGIES:
        results = tuple(evaluate(request.meteoroid, state, s, lead) for s in STRATEGY_PRIORITY)
        comparison = compare(results)
        logger.info("[deflect.compare] lead=%.2f yr best=%s p=%.1f%%", lead, comparison.best.value,
                    next(r.success_probability_pct for r in results if r.strategy is comparison.best))
        return DeflectionReport(lead, results, comparison)

    result = evaluate(request.meteoroid, state, tag, lead)
    logger.info("[deflect] strategy=%s lead=%.2f yr p=%.1f%% level=%s", result.strategy.value, lead,
                result.success_probability_pct, result.safety_level.value)
    return DeflectionReport(lead, (result,))
