from __future__ import annotations

import random
from pathlib import Path
from typing import Iterable, List, Optional, Union

import yaml

from relay.errors import ConfigurationError


def load_credentials(path: Union[str, Path]) -> List[str]:
    """Read the `cookies:` list from a YAML file."""
    path = Path(path)
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except FileNotFoundError as exc:
        raise ConfigurationError(f"credential file not found: {path}") from exc
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"credential file is not valid YAML: {path}: {exc}") from exc

    if not isinstance(data, dict) or not isinstance(data.get("cookies"), list):
        raise ConfigurationError(f"{path} must contain a top-level 'cookies' list")
    return [str(item).strip() for item in data["cookies"] if item and str(item).strip()]


def mask(credential: str) -> str:
    if len(credential) <= 8:
        return "***"
    return f"{credential[:6]}***"


class CredentialPool:
    """Static pool of upstream credentials, fixed for the process lifetime."""

    def __init__(self, credentials: Iterable[str]) -> None:
        self._credentials = tuple(credentials)
        if not self._credentials:
            raise ConfigurationError("credential pool is empty")

    def __len__(self) -> int:
        return len(self._credentials)

    def select(self, explicit: Optional[str] = None) -> str:
        # A caller-supplied credential pins the session.
        if explicit:
            return explicit
        return random.choice(self._credentials)
