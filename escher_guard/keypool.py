"""
Escher Key Pool
===============
Parses the serialized key pool and exposes verification and signing keys.

The pool is a JSON array:

    [{"keyId": "suite_cuda_v1", "secret": "...", "acceptOnly": 0}]

Every key verifies inbound requests. Keys flagged ``acceptOnly`` are
never picked to sign outbound requests.
"""

import json
import re
from typing import Dict, Iterator, List, Mapping, Optional

import structlog
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .exceptions import KeyPoolError

logger = structlog.get_logger(__name__)

KEY_VERSION_PATTERN = re.compile(r"^(?P<prefix>.+)_v(?P<version>\d+)$")


class KeyEntry(BaseModel):
    """A single key of the pool."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    key_id: str = Field(alias="keyId", min_length=1)
    secret: str = Field(min_length=1)
    accept_only: int = Field(default=0, alias="acceptOnly", ge=0, le=1)

    @property
    def version(self) -> Optional[int]:
        match = KEY_VERSION_PATTERN.match(self.key_id)
        return int(match.group("version")) if match else None

    @property
    def prefix(self) -> str:
        match = KEY_VERSION_PATTERN.match(self.key_id)
        return match.group("prefix") if match else self.key_id


class KeyDb(Mapping[str, str]):
    """Read-only key id to secret lookup used for verification."""

    def __init__(self, secrets: Dict[str, str]):
        self._secrets = dict(secrets)

    def __getitem__(self, key_id: str) -> str:
        return self._secrets[key_id]

    def __iter__(self) -> Iterator[str]:
        return iter(self._secrets)

    def __len__(self) -> int:
        return len(self._secrets)

    def __repr__(self) -> str:
        # Secrets stay out of reprs and logs
        return f"KeyDb(key_ids={sorted(self._secrets)!r})"


class KeyPool:
    """Collection of Escher keys loaded from configuration."""

    def __init__(self, entries: List[KeyEntry]):
        self.entries = list(entries)

    @classmethod
    def from_json(cls, serialized: str) -> "KeyPool":
        """
        Parse a serialized key pool.

        Raises:
            KeyPoolError: if the payload is not a JSON array of valid entries
        """
        try:
            raw = json.loads(serialized)
        except (TypeError, ValueError) as e:
            raise KeyPoolError(f"Key pool is not valid JSON: {e}") from e

        if not isinstance(raw, list):
            raise KeyPoolError("Key pool must be a JSON array")

        try:
            entries = [KeyEntry.model_validate(item) for item in raw]
        except ValidationError as e:
            raise KeyPoolError(f"Invalid key pool entry: {e.error_count()} error(s)") from e

        logger.debug("key_pool_loaded", keys=len(entries))
        return cls(entries)

    def key_db(self) -> KeyDb:
        """Lookup over every key, accept-only keys included."""
        return KeyDb({entry.key_id: entry.secret for entry in self.entries})

    def active_key(self, prefix: str) -> KeyEntry:
        """
        Return the newest signing key for a key id prefix.

        Args:
            prefix: Key id without the version suffix (e.g. "suite_cuda")

        Raises:
            KeyPoolError: if no signing key matches the prefix
        """
        candidates = [
            entry for entry in self.entries
            if not entry.accept_only
            and entry.version is not None
            and entry.prefix == prefix
        ]
        if not candidates:
            raise KeyPoolError(f"No active key found for prefix: {prefix}")
        return max(candidates, key=lambda entry: entry.version)


def load_key_db(serialized: str) -> KeyDb:
    """Default key-pool loader for the authenticator."""
    return KeyPool.from_json(serialized).key_db()
