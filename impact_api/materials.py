"""
Material property table for meteoroid compositions.

Values follow the usual meteoritics references:
- rock: ordinary chondrite (stony meteorite, ~85% of falls)
- iron: Fe-Ni alloy (siderite)
- nickel: Ni-rich iron (ataxite)

strength_pa is the ram-pressure threshold for fragmentation and
heat_of_ablation_j_kg the energy needed to ablate 1 kg of surface material.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .errors import InvalidMaterial


class Material(str, Enum):
    ROCK = "rock"
    IRON = "iron"
    NICKEL = "nickel"

    @classmethod
    def parse(cls, tag) -> "Material":
        if isinstance(tag, cls):
            return tag
        try:
            return cls(str(tag).strip().lower())
        except ValueError:
            raise InvalidMaterial(tag, " | ".join(m.value for m in cls)) from None


@dataclass(frozen=True)
class MaterialProperties:
    density_kg_m3: float
    strength_pa: float
    heat_of_ablation_j_kg: float


MATERIAL_TABLE: dict[Material, MaterialProperties] = {
    Material.ROCK:   MaterialProperties(density_kg_m3=3500.0, strength_pa=2.0e7, heat_of_ablation_j_kg=5.0e6),
    Material.IRON:   MaterialProperties(density_kg_m3=7800.0, strength_pa=1.0e8, heat_of_ablation_j_kg=6.3e6),
    Material.NICKEL: MaterialProperties(density_kg_m3=8900.0, strength_pa=1.5e8, heat_of_ablation_j_kg=6.4e6),
}


def lookup(material) -> MaterialProperties:
    """Properties for a material enum value or tag ('rock', 'Iron', ...)."""
    key = Material.parse(material)
    props = MATERIAL_TABLE.get(key)
    if props is None:
        raise InvalidMaterial(material)
    return props
