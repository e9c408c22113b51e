import pytest

from services.env import get_env, get_env_bool, get_env_int


def test_missing_required_value(monkeypatch):
    monkeypatch.delenv("SYNAPSE_TEST_VALUE", raising=False)

    with pytest.raises(AssertionError):
        get_env("SYNAPSE_TEST_VALUE")
    assert get_env("SYNAPSE_TEST_VALUE", "fallback") == "fallback"


def test_integer_values(monkeypatch):
    monkeypatch.setenv("SYNAPSE_TEST_VALUE", "42")
    assert get_env_int("SYNAPSE_TEST_VALUE", 1) == 42

    monkeypatch.setenv("SYNAPSE_TEST_VALUE", "-4")
    assert get_env_int("SYNAPSE_TEST_VALUE") == -4

    monkeypatch.setenv("SYNAPSE_TEST_VALUE", "soon")
    with pytest.raises(ValueError, match="SYNAPSE_TEST_VALUE"):
        get_env_int("SYNAPSE_TEST_VALUE", 1)


def test_boolean_values(monkeypatch):
    monkeypatch.delenv("SYNAPSE_TEST_VALUE", raising=False)
    assert get_env_bool("SYNAPSE_TEST_VALUE", True) is True

    monkeypatch.setenv("SYNAPSE_TEST_VALUE", " false ")
    assert get_env_bool("SYNAPSE_TEST_VALUE", True) is False

    monkeypatch.setenv("SYNAPSE_TEST_VALUE", "yes")
    with pytest.raises(ValueError, match="TRUE"):
        get_env_bool("SYNAPSE_TEST_VALUE", True)
