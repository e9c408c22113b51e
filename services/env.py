import os


def get_env(name: str, default: str | None = None) -> str:
    value = os.getenv(name) or default
    assert value is not None, f"Expected {name} environment variable to be provided"
    return value


def get_env_int(name: str, default: int | None = None) -> int:
    value = os.getenv(name)
    if value is None:
        assert default is not None, f"Expected {name} environment variable to be provided"
        return default
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"Environment variable {name} must be an integer, got '{value}'")


def get_env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default

    v = value.strip().upper()
    if v == "TRUE":
        return True
    elif v == "FALSE":
        return False
    else:
        raise ValueError(f"Environment variable {name} must be a boolean ('TRUE' or 'FALSE'), got '{value}'")
