from __future__ import annotations

import logging
from dataclasses import dataclass
from math import pi, sin, radians, exp, log, isfinite, inf

from .errors import NumericDivergence, OutOfRangeInput
from .materials import Material, MaterialProperties, lookup

logger = logging.getLogger(__name__)

# -----------------------------
# Physical constants & defaults
# -----------------------------
J_PER_MT_TNT = 4.184e15          # J in 1 megaton TNT
R_EARTH_KM = 6371.0
D_COMPLEX_FINAL_KM = 3.2         # simple/complex crater transition

# Valid input domain
VELOCITY_RANGE_MS = (100.0, 100_000.0)
ANGLE_RANGE_DEG = (0.0, 90.0)

# --- Atmospheric entry model constants ---
H0 = 8000.0       # m, scale height
RHO0 = 1.225      # kg/m^3, sea-level reference density
CD_ENTRY = 1.3    # effective drag coeff.
CH_ENTRY = 0.05   # heat-transfer coeff. (share of the air energy flux spent on ablation)
ENTRY_ALTITUDE_M = 100_000.0
ALTITUDE_STEP_M = 50.0
MAX_STEPS = 100_000
MAX_SUBSTEP_CHANGE = 0.05        # max |d ln v| or |d ln m| per RK4 sub-step
MIN_SIN_ANGLE = 1e-6
PANCAKE_FACTOR = 7.0             # fragment cloud diameter / initial diameter
FRAG_DRAG_MULTIPLIER = PANCAKE_FACTOR ** 2
DISSIPATION_VELOCITY_FRACTION = 0.1
ABLATED_MASS_FRACTION = 1e-12

# --- Crater scaling: D = k * E^(1/3.4) ---
CRATER_CALIBRATION_VERSION = "2025.10"
CRATER_K = 0.018                 # m / J^(1/3.4)
CRATER_EXPONENT = 1.0 / 3.4


@dataclass(frozen=True)
class MeteoroidParameters:
    radius_m: float
    velocity_ms: float
    entry_angle_deg: float  # to HORIZONTAL, 90 = vertical
    material: Material = Material.ROCK

    def __post_init__(self):
        object.__setattr__(self, "material", Material.parse(self.material))

    @property
    def diameter_m(self) -> float:
        return 2.0 * self.radius_m

    @property
    def angle_rad(self) -> float:
        return radians(self.entry_angle_deg)


@dataclass(frozen=True)
class EntryState:
    mass_kg: float
    kinetic_energy_initial_j: float
    momentum_kg_ms: float


@dataclass(frozen=True)
class AtmosphericImpactResult:
    f_atm: float
    f_frag: float
    f_total: float
    broke: bool
    final_velocity_ms: float
    energy_lost_percent: float
    e_after_j: float
    kinetic_energy_initial_j: float
    breakup_altitude_m: float | None = None
    airburst_altitude_m: float | None = None

    @property
    def mode(self) -> str:
        return "airburst" if self.airburst_altitude_m is not None else "surface_impact"


@dataclass(frozen=True)
class CraterResult:
    crater_diameter_m: float
    crater_depth_m: float
    regime: str

    @property
    def crater_radius_m(self) -> float:
        return 0.5 * self.crater_diameter_m


@dataclass(frozen=True)
class CalibrationEvent:
    name: str
    energy_j: float
    crater_diameter_m: float


# Historical craters the energy law is checked against. Pinned to these two,
# a 1 km radius iron body at 20 km/s (~0.9 of 1.6e6 Mt delivered) gives a
# ~45 km complex crater, well above the "several km" rule of thumb.
CRATER_CALIBRATION_EVENTS = (
    CalibrationEvent("Meteor Crater (Barringer)", 10.0 * J_PER_MT_TNT, 1_186.0),
    CalibrationEvent("Chicxulub", 1.0e8 * J_PER_MT_TNT, 180_000.0),
)

# Airbursts that must fragment high and leave no crater.
AIRBURST_FIXTURES = {
    "chelyabinsk": MeteoroidParameters(10.0, 19_000.0, 20.0, Material.ROCK),
    "tunguska": MeteoroidParameters(30.0, 15_000.0, 30.0, Material.ROCK),
}


# ---------- Input validation ----------
def validate_parameters(params: MeteoroidParameters) -> None:
    r = params.radius_m
    if not (isfinite(r) and r > 0.0):
        raise OutOfRangeInput("radius_m", r, "> 0 m")
    v = params.velocity_ms
    lo, hi = VELOCITY_RANGE_MS
    if not (isfinite(v) and lo <= v <= hi):
        raise OutOfRangeInput("velocity_ms", v, f"[{lo:g}, {hi:g}] m/s")
    a = params.entry_angle_deg
    lo, hi = ANGLE_RANGE_DEG
    if not (isfinite(a) and lo <= a <= hi):
        raise OutOfRangeInput("entry_angle_deg", a, f"[{lo:g}, {hi:g}] deg")


# ---------- Energetics ----------
def compute_entry_state(params: MeteoroidParameters,
                        material_props: MaterialProperties | None = None) -> EntryState:
    validate_parameters(params)
    props = lookup(params.material) if material_props is None else material_props
    r = params.radius_m
    mass = (4.0 / 3.0) * pi * r * r * r * props.density_kg_m3
    energy = 0.5 * mass * params.velocity_ms**2
    # r^3 over/underflows long before r itself does
    if not (isfinite(energy) and mass > 0.0 and energy > 0.0):
        raise OutOfRangeInput("radius_m", r, "> 0 m with finite, non-zero mass and energy")
    return EntryState(
        mass_kg=mass,
        kinetic_energy_initial_j=energy,
        momentum_kg_ms=mass * params.velocity_ms,
    )


def to_tnt_equivalent(energy_j: float) -> float:
    """Energy in megatons of TNT."""
    return energy_j / J_PER_MT_TNT


def global_recurrence_years(energy_mt: float) -> float | None:
    """Mean interval between impacts of at least this energy anywhere on Earth."""
    if not energy_mt > 0.0:
        return None
    return 109.0 * (energy_mt ** 0.78)


# ---------- ATMOSPHERIC ENTRY ----------
def _rho_at(z_m: float) -> float:
    """Exponential atmosphere: rho(z) = RHO0 * exp(-z/H0)."""
    return RHO0 * exp(-max(z_m, 0.0) / H0)


def breakup_altitude_m(params: MeteoroidParameters, material_props: MaterialProperties) -> float | None:
    """
    Altitude z* where the entry-speed ram pressure RHO(z*) * v0^2 reaches the
    material strength (EIEP leading-order breakup). None if it never does
    above ground.

    z* depends on speed and material only, so every body on the same entry
    fragments at the same height and a larger body never decelerates faster
    than a smaller one.
    """
    q0 = RHO0 * params.velocity_ms ** 2
    if not q0 > material_props.strength_pa:
        return None
    return min(ENTRY_ALTITUDE_M, H0 * log(q0 / material_props.strength_pa))


class AtmosphericEntryModel:
    """
    Single-body drag/ablation entry with ram-pressure breakup.

    State (v, m) is integrated along the straight entry path with RK4. The path
    element is dh / sin(angle), so shallow entries cross a longer air column.
    Each altitude step is cut into sub-steps that change ln(v) and ln(m) by at
    most MAX_SUBSTEP_CHANGE; the step count is capped by max_steps.

    Below breakup_altitude_m() the fragment cloud's drag and ablation area is
    FRAG_DRAG_MULTIPLIER times that of the intact body. The run stops at the
    ground or when the cloud stalls below DISSIPATION_VELOCITY_FRACTION of the
    entry speed (airburst).
    """

    def __init__(self, params: MeteoroidParameters, material_props: MaterialProperties,
                 altitude_step_m: float = ALTITUDE_STEP_M, max_steps: int = MAX_STEPS):
        if not altitude_step_m > 0.0:
            raise ValueError(f"altitude_step_m must be > 0, got {altitude_step_m}")
        self.p = params
        self.props = material_props
        self.altitude_step_m = altitude_step_m
        self.max_steps = max_steps
        self.sin_theta = max(MIN_SIN_ANGLE, sin(params.angle_rad))
        self.breakup_at = breakup_altitude_m(params, material_props)

    def _area_m2(self, mass_kg: float, area_mult: float) -> float:
        r = (3.0 * mass_kg / (4.0 * pi * self.props.density_kg_m3)) ** (1.0 / 3.0)
        return area_mult * pi * r * r

    def _rates(self, h: float, v: float, m: float, area_mult: float) -> tuple[float, float]:
        """dv/ds and dm/ds per metre of path at altitude h."""
        m = max(m, 1e-300)
        flux = _rho_at(h) * self._area_m2(m, area_mult) * v
        return (-CD_ENTRY * flux / (2.0 * m),
                -CH_ENTRY * flux * v / (2.0 * self.props.heat_of_ablation_j_kg))

    def _rk4(self, h: float, v: float, m: float, ds: float, area_mult: float) -> tuple[float, float]:
        dh = ds * self.sin_theta
        k1v, k1m = self._rates(h, v, m, area_mult)
        k2v, k2m = self._rates(h - 0.5*dh, v + 0.5*ds*k1v, m + 0.5*ds*k1m, area_mult)
        k3v, k3m = self._rates(h - 0.5*dh, v + 0.5*ds*k2v, m + 0.5*ds*k2m, area_mult)
        k4v, k4m = self._rates(h - dh, v + ds*k3v, m + ds*k3m, area_mult)
        return (v + ds * (k1v + 2.0*k2v + 2.0*k3v + k4v) / 6.0,
                m + ds * (k1m + 2.0*k2m + 2.0*k3m + k4m) / 6.0)

    def _max_path_step(self, h: float, v: float, m: float, area_mult: float) -> float:
        dv, dm = self._rates(h, v, m, area_mult)
        rate = max(-dv / v, -dm / m)
        return MAX_SUBSTEP_CHANGE / rate if rate > 0.0 else inf

    def run(self, entry_state: EntryState) -> AtmosphericImpactResult:
        v0 = self.p.velocity_ms
        m0 = entry_state.mass_kg
        v_stall = DISSIPATION_VELOCITY_FRACTION * v0
        m_gone = ABLATED_MASS_FRACTION * m0

        h, v, m = ENTRY_ALTITUDE_M, v0, m0
        area_mult = 1.0
        breakup_alt = None
        airburst_alt = None
        steps = 0

        while h > 0.0 and airburst_alt is None:
            h_floor = max(0.0, h - self.altitude_step_m)
            if breakup_alt is None and self.breakup_at is not None:
                if h <= self.breakup_at:
                    breakup_alt = self.breakup_at
                    area_mult = FRAG_DRAG_MULTIPLIER
                    logger.debug("[entry.breakup] h=%.0f m v=%.1f m/s ram=%.3e Pa",
                                 h, v, _rho_at(h) * v * v)
                else:
                    # step boundary lands exactly on z*
                    h_floor = max(h_floor, self.breakup_at)
            while h > h_floor:
                steps += 1
                if steps > self.max_steps:
                    raise NumericDivergence(
                        f"entry integration exceeded {self.max_steps} steps at h={h:.1f} m")
                dh = min(h - h_floor, self._max_path_step(h, v, m, area_mult) * self.sin_theta)
                v, m = self._rk4(h, v, m, dh / self.sin_theta, area_mult)
                h = h_floor if dh >= h - h_floor else h - dh
                if not (isfinite(v) and isfinite(m)) or v < 0.0:
                    raise NumericDivergence(f"non-finite entry state v={v!r} m={m!r} at h={h:.1f} m")

                if v < v_stall or m < m_gone:
                    airburst_alt = h
                    logger.debug("[entry.dissipated] h=%.0f m v=%.1f m/s mass_frac=%.3e",
                                 h, v, m / m0)
                    break

        logger.debug("[entry.done] steps=%d mode=%s", steps,
                     "airburst" if airburst_alt is not None else "surface_impact")

        f_frag = min(1.0, max(0.0, m / m0))
        if airburst_alt is not None:
            f_atm, final_v = 0.0, 0.0
        else:
            f_atm, final_v = min(1.0, (v / v0) ** 2), v
        f_total = f_atm * f_frag
        e0 = entry_state.kinetic_energy_initial_j
        return AtmosphericImpactResult(
            f_atm=f_atm,
            f_frag=f_frag,
            f_total=f_total,
            broke=breakup_alt is not None,
            final_velocity_ms=final_v,
            energy_lost_percent=100.0 * (1.0 - f_total),
            e_after_j=f_total * e0,
            kinetic_energy_initial_j=e0,
            breakup_altitude_m=breakup_alt,
            airburst_altitude_m=airburst_alt,
        )


def simulate_entry(entry_state: EntryState, params: MeteoroidParameters,
                   material_props: MaterialProperties, *,
                   altitude_step_m: float = ALTITUDE_STEP_M,
                   max_steps: int = MAX_STEPS) -> AtmosphericImpactResult:
    return AtmosphericEntryModel(params, material_props, altitude_step_m, max_steps).run(entry_state)


# ---------- Crater scaling ----------
def crater_diameter_from_energy(energy_j: float) -> float | None:
    if not energy_j > 0.0:
        return None
    return CRATER_K * energy_j ** CRATER_EXPONENT


def compute_crater(atmospheric_result: AtmosphericImpactResult) -> CraterResult | None:
    """Final crater for the energy delivered to the ground; None if nothing reaches it."""
    d = crater_diameter_from_energy(atmospheric_result.e_after_j)
    if d is None:
        return None
    dfr_km = 0.294 * ((d / 1000.0) ** 0.301)
    regime = "simple" if d / 1000.0 < D_COMPLEX_FINAL_KM else "complex"
    return CraterResult(crater_diameter_m=d, crater_depth_m=dfr_km * 1000.0, regime=regime)


def _drop_none(d: dict) -> dict:
    return {k: v for k, v in d.items() if v is not None}


class ImpactModel:
    """
    Entry kinematics -> atmospheric entry -> TNT equivalent -> crater.
    """

    def __init__(self, params: MeteoroidParameters, *,
                 altitude_step_m: float = ALTITUDE_STEP_M, max_steps: int = MAX_STEPS):
        validate_parameters(params)
        self.p = params
        self.props = lookup(params.material)
        self.altitude_step_m = altitude_step_m
        self.max_steps = max_steps

    def entry_state(self) -> EntryState:
        return compute_entry_state(self.p, self.props)

    def atmospheric_impact(self, entry_state: EntryState | None = None) -> AtmosphericImpactResult:
        state = self.entry_state() if entry_state is None else entry_state
        return simulate_entry(state, self.p, self.props,
                              altitude_step_m=self.altitude_step_m, max_steps=self.max_steps)

    # ---------- Convenience summary ----------
    def summary(self) -> dict:
        state = self.entry_state()
        atm = self.atmospheric_impact(state)
        crater = compute_crater(atm)
        e0_mt = to_tnt_equivalent(state.kinetic_energy_initial_j)

        logger.info("[impact] r=%.1f m v=%.0f m/s angle=%.1f material=%s mode=%s E0=%.3g Mt crater=%s",
                    self.p.radius_m, self.p.velocity_ms, self.p.entry_angle_deg,
                    self.p.material.value, atm.mode, e0_mt,
                    "none" if crater is None else f"{crater.crater_diameter_m:.0f} m")

        atmospheric = {
            "f_atm": atm.f_atm,
            "f_frag": atm.f_frag,
            "f_total": atm.f_total,
            "broke": atm.broke,
            "breakup_altitude_m": atm.breakup_altitude_m,
            "airburst_altitude_m": atm.airburst_altitude_m,
            "mode": atm.mode,
            "final_velocity_ms": atm.final_velocity_ms,
            "energy_lost_percent": atm.energy_lost_percent,
            "E_after_J": atm.e_after_j,
            "impact_energy_megatons_tnt": to_tnt_equivalent(atm.e_after_j),
        }
        if crater is not None:
            atmospheric.update({
                "crater_diameter_m": crater.crater_diameter_m,
                "crater_radius_m": crater.crater_radius_m,
                "crater_depth_m": crater.crater_depth_m,
                "crater_regime": crater.regime,
            })

        return {
            "calculations": {
                "diameter_m": self.p.diameter_m,
                "radius_m": self.p.radius_m,
                "mass_kg": state.mass_kg,
                "velocity_ms": self.p.velocity_ms,
                "entry_angle_deg": self.p.entry_angle_deg,
                "material": self.p.material.value,
                "density_kg_m3": self.props.density_kg_m3,
                "momentum_kg_ms": state.momentum_kg_ms,
                "kinetic_energy_initial_j": state.kinetic_energy_initial_j,
                "kinetic_energy_initial_megatons_tnt": e0_mt,
            },
            "atmospheric_impact": _drop_none(atmospheric),
            "frequency": _drop_none({"global_recurrence_years": global_recurrence_years(e0_mt)}),
            "calibration": {"crater_scaling": CRATER_CALIBRATION_VERSION},
        }
