"""Helpers for loading scan configuration profiles."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from .errors import BackendError, ErrorCode
from .models import GlobalSettings, RuntimeConfig, ScanProfile

DEFAULT_CONFIG_PATH = Path(__file__).resolve().with_name("defaults.json")
DEFAULT_PROFILE = "default"
ALLOWED_FLAGS = {"r", "r+", "rs+", "a+"}
ALLOWED_CUT_MODES = {"exact", "legacy"}


@dataclass(slots=True)
class ConfigDocument:
    source: Path
    version: int
    global_settings: GlobalSettings
    profiles: Dict[str, ScanProfile]


def load_runtime_config(
    profile: str = DEFAULT_PROFILE,
    *,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> RuntimeConfig:
    """Load configuration JSON, validate it, and resolve a specific profile."""

    document = load_config_document(
        profile_name=profile,
        config_path=config_path,
        overrides=overrides,
    )
    return RuntimeConfig(
        global_settings=document.global_settings,
        profile=document.profiles[profile],
        profile_name=profile,
    )


def load_config_document(
    *,
    profile_name: Optional[str] = None,
    config_path: Optional[Path] = None,
    overrides: Optional[Dict[str, Dict[str, Any]]] = None,
) -> ConfigDocument:
    cfg_path = config_path or DEFAULT_CONFIG_PATH
    raw = _read_config_json(cfg_path)

    version = _require_positive_int(raw.get("version"), "version", cfg_path)
    global_section = raw.get("global")
    if not isinstance(global_section, Mapping):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"'global' section missing in {cfg_path}")

    overrides = overrides or {}
    global_data = {**global_section, **(overrides.get("global") or {})}
    global_settings = _build_global_settings(global_data, cfg_path)

    profiles_section = raw.get("profiles")
    if not isinstance(profiles_section, Mapping) or not profiles_section:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"'profiles' section missing in {cfg_path}")

    profile_overrides = overrides.get("profile") or {}
    profiles: Dict[str, ScanProfile] = {}
    for name, profile_data in profiles_section.items():
        if not isinstance(profile_data, Mapping):
            raise BackendError(
                ErrorCode.CONFIG_ERROR,
                f"Profile '{name}' must be an object in {cfg_path}",
            )
        merged = dict(profile_data)
        if profile_name and name == profile_name and profile_overrides:
            merged = {**merged, **profile_overrides}
        profiles[name] = _build_scan_profile(name, merged, cfg_path)

    if profile_name and profile_name not in profiles:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{profile_name}' not found in {cfg_path}",
        )

    return ConfigDocument(
        source=cfg_path,
        version=version,
        global_settings=global_settings,
        profiles=profiles,
    )


# ---------------------------------------------------------------------------
# Internal helpers


def _read_config_json(path: Path) -> Dict[str, Any]:
    try:
        with path.open("r", encoding="utf-8") as handle:
            return json.load(handle)
    except FileNotFoundError as exc:  # pragma: no cover - depends on filesystem
        raise BackendError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' not found") from exc
    except json.JSONDecodeError as exc:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"Config file '{path}' is not valid JSON: {exc}") from exc


def _build_global_settings(data: Mapping[str, Any], source: Path) -> GlobalSettings:
    encoding = _require_string(data.get("encoding", GlobalSettings().encoding), "global.encoding", source)
    try:
        "".encode(encoding)
    except LookupError as exc:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"global.encoding '{encoding}' is not a known codec in {source}",
        ) from exc
    progress_log = data.get("progress_log")
    if progress_log is not None:
        progress_log = _require_string(progress_log, "global.progress_log", source)
    return GlobalSettings(encoding=encoding, progress_log=progress_log)


def _build_scan_profile(name: str, data: Mapping[str, Any], source: Path) -> ScanProfile:
    prefix = f"profiles.{name}"
    required_fields = ("description", "terminator")
    missing = [field for field in required_fields if field not in data]
    if missing:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Profile '{name}' missing fields {missing} in {source}",
        )

    terminator = data.get("terminator")
    if terminator is not None and not isinstance(terminator, str):
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{prefix}.terminator must be a string or null in {source}",
        )

    flags = _require_string(data.get("flags", "r"), f"{prefix}.flags", source)
    if flags not in ALLOWED_FLAGS:
        allowed = ", ".join(sorted(ALLOWED_FLAGS))
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Unsupported {prefix}.flags '{flags}' in {source}. Allowed: {allowed}",
        )

    cut_mode = _require_string(data.get("cut_mode", "exact"), f"{prefix}.cut_mode", source).lower()
    if cut_mode not in ALLOWED_CUT_MODES:
        allowed = ", ".join(sorted(ALLOWED_CUT_MODES))
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"Unsupported {prefix}.cut_mode '{cut_mode}' in {source}. Allowed: {allowed}",
        )

    return ScanProfile(
        description=_require_string(data.get("description"), f"{prefix}.description", source),
        chunk_size=_optional_positive_int(data.get("chunk_size"), f"{prefix}.chunk_size", source),
        buffer_limit=_require_non_negative_int(
            data.get("buffer_limit", 0), f"{prefix}.buffer_limit", source
        ),
        terminator=terminator or None,
        include_terminator=_require_bool(
            data.get("include_terminator", False), f"{prefix}.include_terminator", source
        ),
        flags=flags,
        emit_trailing=_require_bool(data.get("emit_trailing", False), f"{prefix}.emit_trailing", source),
        cut_mode=cut_mode,  # type: ignore[arg-type]
    )


def _require_string(value: Any, field: str, source: Path) -> str:
    if not isinstance(value, str):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be a string in {source}")
    text = value.strip()
    if not text:
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be non-empty in {source}")
    return text


def _require_bool(value: Any, field: str, source: Path) -> bool:
    if not isinstance(value, bool):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be true or false in {source}")
    return value


def _to_int(value: Any, field: str, source: Path) -> int:
    if isinstance(value, bool):
        raise BackendError(ErrorCode.CONFIG_ERROR, f"{field} must be an integer in {source}")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must be an integer in {source}",
        ) from exc


def _require_positive_int(value: Any, field: str, source: Path) -> int:
    num = _to_int(value, field, source)
    if num <= 0:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must be greater than zero in {source}",
        )
    return num


def _require_non_negative_int(value: Any, field: str, source: Path) -> int:
    num = _to_int(value, field, source)
    if num < 0:
        raise BackendError(
            ErrorCode.CONFIG_ERROR,
            f"{field} must not be negative in {source}",
        )
    return num


def _optional_positive_int(value: Any, field: str, source: Path) -> Optional[int]:
    if value is None:
        return None
    return _require_positive_int(value, field, source)
