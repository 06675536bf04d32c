import pytest

from ExpressionEngine import MathEngine


@pytest.fixture(autouse=True)
def settings_file(tmp_path, monkeypatch):
    """Every test runs against its own settings file (missing until a test writes it)."""
    config_file = tmp_path / "config.json"
    monkeypatch.setenv("EXPRESSION_ENGINE_CONFIG", str(config_file))
    MathEngine.clear_cache()
    MathEngine.reset_default_engine()
    yield config_file
    MathEngine.clear_cache()
    MathEngine.reset_default_engine()
