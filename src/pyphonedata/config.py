"""Updater configuration for pyphonedata."""

from __future__ import annotations

import dataclasses
import os
import shlex
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from pyphonedata import _constants
from pyphonedata.exceptions import ConfigError

BULK_FETCH_MODES: frozenset[str] = frozenset({"archive", "export"})


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigError(f"{key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class UpdaterConfig:
    """Refresh configuration.

    Parameters
    ----------
    cache_dir : Path
        Directory holding the durable snapshot cache and the exported
        carrier/geocoding trees. Created on startup if missing.
    update_interval : float
        Seconds between scheduled refreshes. Non-positive values fall
        back to one day.
    fetch_timeout : float
        Total timeout in seconds for a single HTTP fetch.
    bulk_fetch_timeout : float
        Timeout in seconds for materializing one per-language tree.
    metadata_url : str
        Location of ``PhoneNumberMetadata.xml``.
    timezone_url : str
        Location of the ``<prefix>|<zone>&<zone>`` timezone map.
    archive_url : str
        Tarball the ``archive`` bulk fetcher extracts trees from.
    carrier_source : str
        Remote location of the carrier tree. A path inside the archive in
        ``archive`` mode, a URL handed to the export command in ``export`` mode.
    geocoding_source : str
        Remote location of the geocoding tree, same rules as ``carrier_source``.
    bulk_fetch_mode : str
        ``"archive"`` or ``"export"``.
    export_command : tuple[str, ...]
        Command run inside the target directory in ``export`` mode.
        ``{source}`` is substituted with the remote location.
    """

    cache_dir: Path = Path(_constants.DEFAULT_CACHE_DIR)
    update_interval: float = _constants.DEFAULT_UPDATE_INTERVAL
    fetch_timeout: float = _constants.DEFAULT_FETCH_TIMEOUT
    bulk_fetch_timeout: float = _constants.DEFAULT_BULK_FETCH_TIMEOUT
    metadata_url: str = _constants.METADATA_URL
    timezone_url: str = _constants.TIMEZONE_URL
    archive_url: str = _constants.ARCHIVE_URL
    carrier_source: str = _constants.CARRIER_SOURCE
    geocoding_source: str = _constants.GEOCODING_SOURCE
    bulk_fetch_mode: str = "archive"
    export_command: tuple[str, ...] = ("svn", "export", "{source}", "--force")

    def __post_init__(self) -> None:
        # Normalize in place; the dataclass is frozen so go through object.__setattr__.
        cache_dir = self.cache_dir
        if not str(cache_dir).strip():
            cache_dir = Path(_constants.DEFAULT_CACHE_DIR)
        object.__setattr__(self, "cache_dir", Path(cache_dir))
        if self.update_interval <= 0:
            object.__setattr__(self, "update_interval", _constants.DEFAULT_UPDATE_INTERVAL)
        if self.fetch_timeout <= 0:
            raise ConfigError(f"fetch_timeout must be positive, got {self.fetch_timeout}")
        if self.bulk_fetch_timeout <= 0:
            raise ConfigError(f"bulk_fetch_timeout must be positive, got {self.bulk_fetch_timeout}")
        if self.bulk_fetch_mode not in BULK_FETCH_MODES:
            raise ConfigError(f"bulk_fetch_mode must be one of {sorted(BULK_FETCH_MODES)}, got {self.bulk_fetch_mode!r}")
        if not self.export_command:
            raise ConfigError("export_command must not be empty")
        object.__setattr__(self, "export_command", tuple(self.export_command))

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / _constants.CACHE_FILENAME

    @classmethod
    def from_env(cls, **overrides: Any) -> UpdaterConfig:
        """Create configuration from ``PHONEDATA_*`` environment variables.

        Explicit keyword arguments override environment values.
        """
        env = os.environ

        _ENV_STR_MAP = {
            "PHONEDATA_METADATA_URL": "metadata_url",
            "PHONEDATA_TIMEZONE_URL": "timezone_url",
            "PHONEDATA_ARCHIVE_URL": "archive_url",
            "PHONEDATA_CARRIER_SOURCE": "carrier_source",
            "PHONEDATA_GEOCODING_SOURCE": "geocoding_source",
            "PHONEDATA_BULK_FETCH_MODE": "bulk_fetch_mode",
        }
        config_kwargs: dict[str, Any] = {}
        for env_key, field_name in _ENV_STR_MAP.items():
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        cache_dir = env.get("PHONEDATA_CACHE_DIR")
        if cache_dir is not None and cache_dir.strip():
            config_kwargs["cache_dir"] = Path(cache_dir)

        _ENV_FLOAT_MAP = {
            "PHONEDATA_UPDATE_INTERVAL": "update_interval",
            "PHONEDATA_FETCH_TIMEOUT": "fetch_timeout",
            "PHONEDATA_BULK_FETCH_TIMEOUT": "bulk_fetch_timeout",
        }
        for env_key, field_name in _ENV_FLOAT_MAP.items():
            if field_name in overrides:
                continue
            value = _env_float(env, env_key)
            if value is not None:
                config_kwargs[field_name] = value

        command = env.get("PHONEDATA_EXPORT_COMMAND")
        if command is not None and "export_command" not in overrides:
            config_kwargs["export_command"] = tuple(shlex.split(command))

        config_kwargs.update(overrides)

        return cls(**config_kwargs)
