"""
Environment configuration readers.

``EnvFileConfig`` exposes the values of one ``KEY=VALUE`` file, with process
environment variables taking precedence. ``ConfigCache`` keeps one parsed
instance per (display name, path) and is invalidated whenever a file is
rewritten.
"""
import logging
import os
import threading
from collections.abc import Callable
from pathlib import Path
from typing import IO, Any, Optional, Union

from dotenv.parser import parse_stream

from .exceptions import EnvFileError, InvalidArgumentError, PropertyNotFoundError
from .vault.encoding import decode_secret_key
from .vault.validation import validate_parameters

logger = logging.getLogger("envcrypt")

_MISSING = object()
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def literal_values(stream: IO[str]) -> dict[str, Optional[str]]:
    """Map each variable to the raw text after ``NAME=`` on its first line.

    The dotenv parser finds the assignments and skips comment and blank
    lines, but values are not unquoted or comment-stripped: ``A='x' # y``
    yields ``'x' # y``, exactly what the line writer replaces. Lines outside
    the plain ``NAME=value`` form (``export``, spaces around ``=``) keep the
    dotenv interpretation. The first assignment of a name wins.
    """
    values: dict[str, Optional[str]] = {}
    for binding in parse_stream(stream):
        # original text carries the blank lines preceding the binding
        lines = [line for line in binding.original.string.splitlines() if line.strip()]
        raw = lines[0] if lines else ""
        key = binding.key
        if key is None:
            name, sep, _ = raw.partition("=")
            if not sep or not name.strip() or name.lstrip().startswith("#"):
                continue
            key = name.strip()
        if key in values:
            continue
        prefix = f"{key}="
        values[key] = raw[len(prefix):] if raw.startswith(prefix) else binding.value
    return values


class EnvFileConfig:
    """Read-only view of a single environment file."""

    def __init__(
        self,
        display_name: str,
        path: Union[str, Path],
        prefer_os_environ: bool = True,
    ):
        validate_parameters(display_name=display_name)
        self.display_name = display_name
        self.path = Path(path)
        self.prefer_os_environ = prefer_os_environ
        self._values: dict[str, Optional[str]] = {}
        self._load()

    def _load(self) -> None:
        if not self.path.is_file():
            logger.error(
                "Failed to load environment '%s' with name '%s'",
                self.path, self.display_name,
            )
            raise EnvFileError("Environment file not found", self.path)
        try:
            with self.path.open(encoding="utf-8") as stream:
                self._values = literal_values(stream)
        except (OSError, UnicodeDecodeError) as err:
            raise EnvFileError("Failed to parse environment file", self.path) from err
        logger.debug(
            "Loaded %d variable(s) for configuration '%s'",
            len(self._values), self.display_name,
        )

    def _lookup(self, key: str) -> Optional[str]:
        if self.prefer_os_environ:
            value = os.environ.get(key)
            if value is not None:
                logger.debug("Property '%s' read from system environment", key)
                return value
        return self._values.get(key)

    def get_property(self, key: str, default: Any = _MISSING) -> Any:
        """Return the raw value of ``key``.

        Args:
            key: Variable name.
            default: Returned when the variable is absent, empty or blank.
                When omitted, a missing variable raises.

        Raises:
            PropertyNotFoundError: If the variable is missing or blank and
                no default was given.
        """
        validate_parameters(key=key)
        value = self._lookup(key)
        if value is None or not value.strip():
            if default is _MISSING:
                raise PropertyNotFoundError(key, self.display_name)
            logger.warning(
                "Environment variable '%s' not found, using default in configuration '%s'",
                key, self.display_name,
            )
            return default
        return value

    def get_typed(self, key: str, type_: type) -> Optional[Any]:
        """Return ``key`` converted to ``str``, ``int``, ``float`` or ``bool``.

        Returns None (and logs) when the variable is missing or cannot be
        converted.
        """
        value = self.get_property(key, None)
        if value is None:
            return None
        try:
            if type_ is str:
                return value
            if type_ is bool:
                lowered = value.strip().lower()
                if lowered in _TRUE_VALUES:
                    return True
                if lowered in _FALSE_VALUES:
                    return False
                raise ValueError(f"not a boolean: {key}")
            if type_ in (int, float):
                return type_(value.strip())
        except ValueError:
            logger.error(
                "Failed to convert environment variable '%s' to %s",
                key, type_.__name__,
            )
            return None
        raise InvalidArgumentError(f"Unsupported type conversion: {type_.__name__}")

    def get_secret_key(self, name: str) -> bytes:
        """Decode the base64 master key stored under ``name``."""
        return decode_secret_key(self.get_property(name))

    def keys(self) -> list[str]:
        return list(self._values)

    def reload(self) -> None:
        """Re-read the file from disk."""
        self._load()
        logger.info("Environment configuration '%s' reloaded successfully", self.display_name)

    def __repr__(self) -> str:
        return f"<EnvFileConfig {self.display_name}: {self.path}>"


class ConfigCache:
    """Thread-safe cache of parsed configurations.

    A miss loads exactly once even when several threads ask concurrently.
    Loads hold only the lock of their own entry, so a slow file never delays
    lookups of another one.
    """

    def __init__(self):
        self._entries: dict[tuple[str, Path], EnvFileConfig] = {}
        self._load_locks: dict[tuple[str, Path], threading.Lock] = {}
        self._generation = 0
        self._lock = threading.Lock()

    @staticmethod
    def _key(display_name: str, path: Union[str, Path]) -> tuple[str, Path]:
        return display_name, Path(path).resolve()

    def _load_lock(self, key: tuple[str, Path]) -> threading.Lock:
        with self._lock:
            lock = self._load_locks.get(key)
            if lock is None:
                lock = threading.Lock()
                self._load_locks[key] = lock
            return lock

    def get(
        self,
        display_name: str,
        path: Union[str, Path],
        loader: Callable[[], EnvFileConfig],
    ) -> EnvFileConfig:
        """Return the cached configuration, calling ``loader`` on a miss."""
        key = self._key(display_name, path)
        config = self._entries.get(key)
        if config is not None:
            return config
        with self._load_lock(key):
            config = self._entries.get(key)
            if config is not None:
                return config
            generation = self._generation
            logger.info("Loading configuration for: %s:%s", display_name, path)
            config = loader()
            with self._lock:
                # an invalidation during the load means the file changed under it
                if generation == self._generation:
                    self._entries[key] = config
            return config

    def invalidate(self, path: Optional[Union[str, Path]] = None) -> int:
        """Drop cached entries for ``path``, or all entries when None.

        Returns:
            Number of entries removed.
        """
        with self._lock:
            self._generation += 1
            if path is None:
                removed = len(self._entries)
                self._entries.clear()
            else:
                resolved = Path(path).resolve()
                stale = [key for key in self._entries if key[1] == resolved]
                for key in stale:
                    del self._entries[key]
                removed = len(stale)
        logger.debug("Configuration cache invalidated (%d entries)", removed)
        return removed

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, item: tuple[str, Union[str, Path]]) -> bool:
        display_name, path = item
        return self._key(display_name, path) in self._entries
