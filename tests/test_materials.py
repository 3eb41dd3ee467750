"""Material table lookups and tag parsing."""

import pytest

from impact_api.errors import InvalidInput, InvalidMaterial
from impact_api.materials import MATERIAL_TABLE, Material, MaterialProperties, lookup


class TestLookup:

    def test_total_over_enum(self):
        for material in Material:
            assert isinstance(lookup(material), MaterialProperties)

    def test_tags_are_case_insensitive(self):
        assert lookup("Iron") == lookup(Material.IRON)
        assert lookup(" rock ") == MATERIAL_TABLE[Material.ROCK]

    def test_metals_denser_and_stronger_than_rock(self):
        rock = lookup(Material.ROCK)
        for metal in (Material.IRON, Material.NICKEL):
            props = lookup(metal)
            assert props.density_kg_m3 > rock.density_kg_m3
            assert props.strength_pa > rock.strength_pa

    def test_unknown_tag(self):
        with pytest.raises(InvalidMaterial) as exc:
            lookup("ice")
        assert exc.value.field == "material"
        assert "rock" in str(exc.value)

    def test_invalid_material_is_invalid_input(self):
        with pytest.raises(InvalidInput):
            Material.parse("basalt")
