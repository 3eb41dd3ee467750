import logging
from typing import Literal

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, field_validator

from . import __version__
from .deflection import DeflectionRequest, evaluate_request
from .errors import InvalidInput, NumericDivergence, UnsupportedStrategy
from .impact_model import ANGLE_RANGE_DEG, VELOCITY_RANGE_MS, ImpactModel, MeteoroidParameters
from .materials import MATERIAL_TABLE
from .settings import load_settings

settings = load_settings()
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s %(message)s")
logger = logging.getLogger(__name__)

app = FastAPI(title="Meteor Impact & Deflection Engine", version=__version__)


# -------------------------------
# Error mapping
# -------------------------------
@app.exception_handler(InvalidInput)
def invalid_input_handler(request: Request, exc: InvalidInput):
    logger.info("[request.invalid] %s %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={
        "error": type(exc).__name__, "field": exc.field, "valid_range": exc.valid_range, "detail": str(exc),
    })


@app.exception_handler(UnsupportedStrategy)
def unsupported_strategy_handler(request: Request, exc: UnsupportedStrategy):
    logger.info("[request.invalid] %s %s", request.url.path, exc)
    return JSONResponse(status_code=400, content={
        "error": "UnsupportedStrategy", "field": "strategy", "detail": str(exc),
    })


@app.exception_handler(NumericDivergence)
def numeric_divergence_handler(request: Request, exc: NumericDivergence):
    logger.error("[compute.diverged] %s %s", request.url.path, exc)
    return JSONResponse(status_code=500, content={"error": "ComputationError", "detail": "computation error"})


# -------------------------------
# Health + small utility endpoint
# -------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.get("/materials")
def materials():
    return {
        m.value: {"density_kg_m3": p.density_kg_m3, "strength_pa": p.strength_pa}
        for m, p in MATERIAL_TABLE.items()
    }


# -------------------------------
# Impact simulation endpoints
# -------------------------------

class MeteoroidIn(BaseModel):
    radius_m: float = Field(..., gt=0, description="Meteoroid radius in meters")
    velocity_ms: float = Field(..., ge=VELOCITY_RANGE_MS[0], le=VELOCITY_RANGE_MS[1],
                               description="Entry speed in m/s")
    entry_angle_deg: float = Field(..., ge=ANGLE_RANGE_DEG[0], le=ANGLE_RANGE_DEG[1],
                                   description="Entry angle to horizontal in degrees (90 = vertical)")
    material: Literal["rock", "iron", "nickel"] = Field(..., description="Composition class")

    @field_validator("material", mode="before")
    @classmethod
    def _lower_material(cls, v):
        return v.strip().lower() if isinstance(v, str) else v

    def to_params(self) -> MeteoroidParameters:
        return MeteoroidParameters(
            radius_m=self.radius_m,
            velocity_ms=self.velocity_ms,
            entry_angle_deg=self.entry_angle_deg,
            material=self.material,
        )


class DeflectionIn(BaseModel):
    meteoroid: MeteoroidIn
    strategy: str = Field("all", description="kinetic_impactor | gravity_tractor | nuclear_standoff | "
                                              "laser_ablation | all")
    lead_time_years: float = Field(..., ge=1, le=10, description="Warning time before impact in years")


@app.post("/calculateImpact")
def calculate_impact(req: MeteoroidIn):
    model = ImpactModel(
        req.to_params(),
        altitude_step_m=settings.altitude_step_m,
        max_steps=settings.max_integration_steps,
    )
    return model.summary()


@app.post("/evaluateDeflection")
def evaluate_deflection(req: DeflectionIn):
    report = evaluate_request(DeflectionRequest(
        meteoroid=req.meteoroid.to_params(),
        lead_time_years=req.lead_time_years,
        strategy=req.strategy,
    ))
    return report.to_dict()
