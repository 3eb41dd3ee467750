from __future__ import annotations


class ImpactEngineError(Exception):
    """Base class for every error raised by the impact engine."""


class InvalidInput(ImpactEngineError, ValueError):
    """Input outside its physical domain. Raised before any computation."""

    def __init__(self, field: str, value, valid_range: str):
        self.field = field
        self.value = value
        self.valid_range = valid_range
        super().__init__(f"{field}={value!r} is invalid; valid range is {valid_range}")


class OutOfRangeInput(InvalidInput):
    """Numeric parameter outside its valid range (radius, velocity, angle, lead time)."""


class InvalidMaterial(InvalidInput):
    def __init__(self, value, valid: str = "rock | iron | nickel"):
        super().__init__("material", value, valid)


class UnsupportedStrategy(ImpactEngineError, ValueError):
    def __init__(self, tag, valid: str):
        self.tag = tag
        self.valid = valid
        super().__init__(f"Unknown deflection strategy {tag!r}; expected one of {valid}")


class NumericDivergence(ImpactEngineError, ArithmeticError):
    """Integration produced a non-finite state or ran out of its step budget."""
