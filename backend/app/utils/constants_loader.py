import os
from pathlib import Path

import yaml

_DEFAULT_PATH = Path(__file__).resolve().parent.parent / "constants"


def _constants_path() -> Path:
    """Read REGISTER_CONSTANTS_PATH at call time (supports env var changes in tests)."""
    return Path(os.getenv("REGISTER_CONSTANTS_PATH", str(_DEFAULT_PATH)))


_cache: dict[str, dict] = {}


def load_register_constants() -> dict:
    path = _constants_path() / "register.yaml"
    cache_key = str(path)
    if cache_key in _cache:
        return _cache[cache_key]

    if not path.exists():
        raise FileNotFoundError(f"No register constants found at {path}")

    with open(path, encoding="utf-8") as f:
        result = yaml.safe_load(f)
    _cache[cache_key] = result
    return result


def get_depreciation_fallbacks() -> tuple[int, float]:
    dep = load_register_constants().get("depreciation", {})
    return int(dep.get("fallback_useful_life_years", 5)), float(dep.get("fallback_depreciation_rate", 20))


def get_report_thresholds() -> dict:
    return load_register_constants().get("reports", {})


def get_labels(kind: str) -> dict[int, str]:
    labels = load_register_constants().get("labels", {})
    return {int(k): v for k, v in labels.get(kind, {}).items()}


def label_for(kind: str, code: int | None) -> str:
    unspecified = load_register_constants().get("labels", {}).get("unspecified", "-")
    if code is None:
        return unspecified
    return get_labels(kind).get(int(code), unspecified)


def get_permission_catalogue() -> dict[str, str]:
    return load_register_constants().get("permissions", {})


def get_system_roles() -> dict[str, list[str]]:
    return load_register_constants().get("system_roles", {})


def get_tenant_role_templates() -> dict[str, list[str]]:
    return load_register_constants().get("tenant_role_templates", {})


def get_owner_role() -> str:
    return load_register_constants().get("owner_role", "school-admin")


def get_ungrantable_roles() -> set[str]:
    return set(load_register_constants().get("ungrantable_roles", []))
