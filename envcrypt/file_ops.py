"""
Environment file writes.

Variable updates are whole-file rewrites: read every line, replace the first
``NAME=`` line (or append one) and write the result back through a temporary
file in the same directory. Writers to the same path are serialized with a
per-path lock.
"""
import logging
import os
import tempfile
import threading
from pathlib import Path
from typing import Union

from .exceptions import EnvFileError, InvalidArgumentError
from .vault.validation import validate_parameters

logger = logging.getLogger("envcrypt")

PathLike = Union[str, Path]


def update_lines(lines: list[str], name: str, value: str) -> list[str]:
    """Return ``lines`` with ``name`` set to ``value``.

    Only the first line starting with ``NAME=`` is replaced; if none exists
    the assignment is appended.
    """
    prefix = f"{name}="
    updated = list(lines)
    for index, line in enumerate(updated):
        if line.startswith(prefix):
            updated[index] = f"{prefix}{value}"
            return updated
    updated.append(f"{prefix}{value}")
    return updated


class EnvFileWriter:
    """Line-oriented reader/writer for ``KEY=VALUE`` files."""

    def __init__(self, encoding: str = "utf-8"):
        self.encoding = encoding
        self._locks: dict[Path, threading.RLock] = {}
        self._registry_lock = threading.Lock()

    def lock_for(self, path: PathLike) -> threading.RLock:
        """Return the re-entrant lock guarding ``path``, created on first use."""
        key = Path(path).resolve()
        with self._registry_lock:
            lock = self._locks.get(key)
            if lock is None:
                lock = threading.RLock()
                self._locks[key] = lock
            return lock

    def ensure_file(self, path: PathLike) -> Path:
        """Create the parent directory and an empty file if missing.

        Raises:
            EnvFileError: If the directory or file cannot be created.
        """
        file_path = Path(path)
        try:
            file_path.parent.mkdir(parents=True, exist_ok=True)
            if not file_path.exists():
                file_path.touch()
                logger.info("Created environment file: %s", file_path)
        except OSError as err:
            logger.error("Failed to ensure environment file exists: %s", file_path)
            raise EnvFileError("Failed to create environment file", file_path) from err
        return file_path

    def read_lines(self, path: PathLike) -> list[str]:
        """Read a file as a list of lines without line terminators.

        Raises:
            EnvFileError: If the file cannot be read.
        """
        file_path = Path(path)
        try:
            return file_path.read_text(encoding=self.encoding).splitlines()
        except OSError as err:
            logger.error("Failed to read environment file: %s", file_path)
            raise EnvFileError("Failed to read environment file", file_path) from err

    def is_variable_set(self, path: PathLike, name: str) -> bool:
        """True if a ``NAME=`` line with a non-blank value exists."""
        validate_parameters(name=name)
        prefix = f"{name}="
        return any(
            line.startswith(prefix) and line[len(prefix):].strip()
            for line in self.read_lines(path)
        )

    def update_variable(self, path: PathLike, name: str, value: str) -> Path:
        """Set ``name`` to ``value`` in the file at ``path``.

        Returns:
            The path written.

        Raises:
            InvalidArgumentError: If name is blank or value is None.
            EnvFileError: If the file cannot be read or written.
        """
        validate_parameters(name=name)
        if value is None:
            raise InvalidArgumentError("Value cannot be null")
        file_path = Path(path)
        with self.lock_for(file_path):
            lines = update_lines(self.read_lines(file_path), name, value)
            self._atomic_write(file_path, "\n".join(lines) + "\n")
        logger.info("Environment variable '%s' updated in %s", name, file_path)
        return file_path

    def _atomic_write(self, file_path: Path, content: str) -> None:
        temp_path = None
        try:
            with tempfile.NamedTemporaryFile(
                mode="w",
                encoding=self.encoding,
                dir=file_path.parent,
                prefix=f".tmp_{file_path.name}_",
                suffix=".tmp",
                delete=False,
            ) as temp_file:
                temp_path = Path(temp_file.name)
                temp_file.write(content)
                temp_file.flush()
                os.fsync(temp_file.fileno())
            temp_path.replace(file_path)
            temp_path = None
        except OSError as err:
            logger.error("Failed to write environment file: %s", file_path)
            raise EnvFileError("Failed to write environment file", file_path) from err
        finally:
            if temp_path is not None and temp_path.exists():
                temp_path.unlink()
