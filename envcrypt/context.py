"""
VaultContext — process-level owner of envcrypt's shared state.

Build one at startup and hand it to every ``EnvironmentCryptoManager``; the
configuration cache, file locks and random source are never module globals.
"""
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Optional, Union

from .conf import Environment, VaultSettings
from .environments import ConfigCache, EnvFileConfig
from .file_ops import EnvFileWriter
from .vault.keygen import SecureKeyGenerator
from .vault.validation import validate_parameters

logger = logging.getLogger("envcrypt")


class VaultContext:
    """Settings, configuration cache, file writer and key generator."""

    def __init__(self, settings: Optional[VaultSettings] = None):
        self.settings = settings or VaultSettings.from_env()
        self.config_cache = ConfigCache()
        self.writer = EnvFileWriter()
        self.keygen = SecureKeyGenerator()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._executor_lock = threading.Lock()

    @property
    def base_file_path(self) -> Path:
        return self.settings.base_file_path

    @property
    def executor(self) -> ThreadPoolExecutor:
        """Worker pool for non-blocking decrypts, created on first use."""
        with self._executor_lock:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(thread_name_prefix="envcrypt")
            return self._executor

    def resolve_path(self, source: Union[str, Path]) -> Path:
        """Resolve bare relative filenames under the environment directory.

        ``.env.uat`` becomes ``<env_directory>/.env.uat``; absolute paths and
        paths with a directory part are used as given.
        """
        path = Path(source)
        if not path.is_absolute() and path.parent == Path("."):
            return self.settings.env_directory / path
        return path

    def get_configuration(
        self, display_name: str, source: Union[str, Path]
    ) -> EnvFileConfig:
        """Return the cached configuration for a tier file, loading it once."""
        validate_parameters(display_name=display_name)
        path = self.resolve_path(source)
        return self.config_cache.get(
            display_name,
            path,
            lambda: EnvFileConfig(
                display_name, path, prefer_os_environ=self.settings.prefer_os_environ
            ),
        )

    def get_base_configuration(self) -> EnvFileConfig:
        return self.get_configuration(Environment.BASE.display_name, self.base_file_path)

    def invalidate(self, source: Optional[Union[str, Path]] = None) -> None:
        """Forget parsed configurations for ``source`` (or all of them)."""
        if source is None:
            self.config_cache.invalidate()
        else:
            self.config_cache.invalidate(self.resolve_path(source))

    def close(self) -> None:
        with self._executor_lock:
            executor, self._executor = self._executor, None
        if executor is not None:
            executor.shutdown(wait=True)

    def __enter__(self) -> "VaultContext":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
