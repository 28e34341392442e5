"""
Local credential store for remote service keys.

Keys live in a small JSON preference file mapping service name to secret.
When the file has no entry for a service, the matching environment variable
is used instead.
"""

import json
import logging
import os
from pathlib import Path
from typing import Dict, Optional

from ..config import CREDENTIAL_ENV_FALLBACKS, get_settings_file
from .error_handling import ConfigurationError

logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "ConvertAPI key is not configured. Please add it in Settings."


class CredentialStore:
    """Key-value store of service secrets backed by a JSON file."""

    def __init__(
        self,
        path: Optional[Path] = None,
        env_fallbacks: Optional[Dict[str, str]] = None
    ):
        self.path = Path(path) if path is not None else get_settings_file()
        self.env_fallbacks = CREDENTIAL_ENV_FALLBACKS if env_fallbacks is None else env_fallbacks

    def _load(self) -> Dict[str, str]:
        if not self.path.exists():
            return {}

        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.error(f"Failed to parse stored credentials in {self.path}: {e}")
            return {}

        if not isinstance(data, dict):
            logger.error(f"Stored credentials in {self.path} are not an object")
            return {}

        return data

    @staticmethod
    def _decode(value) -> str:
        # Values may have been stored JSON-encoded a second time
        if isinstance(value, str):
            try:
                decoded = json.loads(value)
            except ValueError:
                return value
            return decoded if isinstance(decoded, str) else value
        return ""

    def get(self, service: str) -> Optional[str]:
        """
        Get the secret for a service.

        Args:
            service: Service name, e.g. 'convertapi'

        Returns:
            The stored secret, else the environment fallback, else None
        """
        secret = self._decode(self._load().get(service))
        if not secret:
            env_var = self.env_fallbacks.get(service)
            if env_var:
                secret = os.environ.get(env_var, "")
        return secret or None

    def require(self, service: str) -> str:
        """Get the secret for a service or raise ConfigurationError."""
        secret = self.get(service)
        if not secret:
            raise ConfigurationError(MISSING_KEY_MESSAGE, details={"service": service})
        return secret

    def set(self, service: str, secret: str) -> None:
        """Persist a secret, keeping every other stored entry."""
        data = self._load()
        data[service] = secret
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")
        logger.info(f"Stored credential for {service} in {self.path}")
