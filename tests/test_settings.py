import pytest

from impact_api.impact_model import ALTITUDE_STEP_M, MAX_STEPS
from impact_api.settings import load_settings


@pytest.fixture
def clean_env(monkeypatch):
    for name in ("IMPACT_LOG_LEVEL", "IMPACT_ALTITUDE_STEP_M", "IMPACT_MAX_INTEGRATION_STEPS"):
        monkeypatch.delenv(name, raising=False)
    return monkeypatch


class TestLoadSettings:

    def test_defaults(self, clean_env):
        s = load_settings()
        assert s.log_level == "INFO"
        assert s.altitude_step_m == ALTITUDE_STEP_M
        assert s.max_integration_steps == MAX_STEPS

    def test_overrides(self, clean_env):
        clean_env.setenv("IMPACT_LOG_LEVEL", "debug")
        clean_env.setenv("IMPACT_ALTITUDE_STEP_M", "25")
        clean_env.setenv("IMPACT_MAX_INTEGRATION_STEPS", "5000")
        s = load_settings()
        assert s.log_level == "DEBUG"
        assert s.altitude_step_m == 25.0
        assert s.max_integration_steps == 5000

    @pytest.mark.parametrize("name, value", [
        ("IMPACT_LOG_LEVEL", "chatty"),
        ("IMPACT_ALTITUDE_STEP_M", "0"),
        ("IMPACT_MAX_INTEGRATION_STEPS", "0"),
    ])
    def test_bad_values(self, clean_env, name, value):
        clean_env.setenv(name, value)
        with pytest.raises(ValueError):
            load_settings()
