# Module: src/agcoats/config.py
# Description: Persistent CLI configuration (credentials and API base URLs).

import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

CONFIG_DIR_NAME = ".ktmcp"
CONFIG_FILE_NAME = "agcoats.json"

DEFAULT_BASE_URL = "https://api.agco-ats.com"
DEFAULT_SERVICES_URL = "https://secure.agco-ats.com/api/v2"

DEFAULTS: Dict[str, Any] = {
    "baseUrl": DEFAULT_BASE_URL,
    "servicesUrl": DEFAULT_SERVICES_URL,
}

# Families of commands and the credential each one accepts
DATA_FAMILY = "data"
SERVICES_FAMILY = "services"


class ConfigRecord(BaseModel):
    """Shape of the persisted configuration file. Unknown keys are kept."""
    model_config = ConfigDict(extra="allow")

    token: Optional[str] = None
    api_key: Optional[str] = Field(None, alias="apiKey")
    base_url: Optional[str] = Field(None, alias="baseUrl")
    services_url: Optional[str] = Field(None, alias="servicesUrl")


def default_config_path() -> Path:
    return Path.home() / CONFIG_DIR_NAME / CONFIG_FILE_NAME


def _deep_merge(base: Dict[str, Any], updates: Dict[str, Any]) -> Dict[str, Any]:
    merged = dict(base)
    for key, value in updates.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _deep_merge(merged[key], value)
        else:
            merged[key] = value
    return merged


class ConfigStore:
    """
    Reads and writes the CLI configuration file.

    The file is read at most once per instance and cached; every write is a
    full read-merge-write of the JSON object. A missing or unreadable file is
    the default configuration. There is no locking, concurrent invocations
    race on the file and the last writer wins.
    """

    def __init__(self, path: Optional[Path] = None):
        self._path = Path(path) if path else default_config_path()
        self._record: Optional[Dict[str, Any]] = None

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> Dict[str, Any]:
        """Loads the persisted record, returning {} if absent or corrupt."""
        if not self._path.exists():
            logger.debug(f"Config file not found at {self._path}. Using defaults.")
            return {}
        try:
            content = self._path.read_text(encoding="utf-8")
            if not content.strip():
                logger.debug(f"Config file at {self._path} is empty. Using defaults.")
                return {}
            raw_data = json.loads(content)
            record = ConfigRecord.model_validate(raw_data)
            return record.model_dump(by_alias=True, exclude_none=True)
        except json.JSONDecodeError as e:
            logger.warning(f"JSON decode error loading config from {self._path}: {e}. Using defaults.")
        except ValidationError as e:
            logger.warning(f"Invalid config data in {self._path}: {e}. Using defaults.")
        except OSError as e:
            logger.warning(f"Could not read config file {self._path}: {e}. Using defaults.")
        return {}

    def _persisted(self) -> Dict[str, Any]:
        if self._record is None:
            self._record = self._load()
        return self._record

    def reload(self) -> None:
        """Drops the cached record so the next read hits the file again."""
        self._record = None

    def get(self, key: Optional[str] = None) -> Any:
        """
        Returns the whole configuration (defaults overlaid with persisted
        values), or the value for a single key (None when unset).
        """
        config = {**DEFAULTS, **self._persisted()}
        if key is None:
            return config
        return config.get(key)

    def set(self, key: str, value: Any) -> Dict[str, Any]:
        """Merges a single key into the persisted configuration."""
        return self.update({key: value})

    def update(self, updates: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merges the given keys into the configuration file and writes it back.

        Keys whose value is None are ignored. Returns the new persisted record.
        """
        updates = {k: v for k, v in updates.items() if v is not None}
        current = self._load()  # Always re-read before writing
        new_record = _deep_merge(current, updates)

        if not self._path.parent.exists():
            self._path.parent.mkdir(parents=True, exist_ok=True)
        self._path.write_text(json.dumps(new_record, indent=2), encoding="utf-8")
        logger.info(f"Configuration saved to {self._path} (keys updated: {', '.join(sorted(updates)) or 'none'})")

        self._record = new_record
        return dict(new_record)

    def is_configured(self, family: str = DATA_FAMILY) -> bool:
        """True when a credential usable by the given command family is set."""
        if self.get("token"):
            return True
        if family == SERVICES_FAMILY:
            return False
        return bool(self.get("apiKey"))
