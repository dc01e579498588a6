import os

from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise ValueError(f"{name} must be a number, got {raw!r}")


def _optional_int_env(name: str):
    raw = os.getenv(name, "").strip()
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


# Simulated analysis latency (seconds) shown behind the spinner
LATENCY_SECONDS = max(0.0, _float_env("CARDIOGUARD_LATENCY_SECONDS", 1.5))

# Fixed seed makes every analysis reproducible (demos, screenshots)
RANDOM_SEED = _optional_int_env("CARDIOGUARD_RANDOM_SEED")

LOG_LEVEL = os.getenv("CARDIOGUARD_LOG_LEVEL", "INFO").upper()
