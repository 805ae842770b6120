"""
Cache of previously acquired Terraform executables

Lets test harnesses that run many Terraform versions reuse binaries across
runs instead of downloading them again.
"""

import os
import json
import fcntl
import logging
import tempfile
from contextlib import contextmanager
from pathlib import Path
from datetime import datetime
from typing import Optional, Dict, Any, Union

from .constants import CACHE_DIR_USER, CACHE_FILE_NAME, CACHE_LOCK_SUFFIX
from .exceptions import InstallationError, ValidationError
from .getter import calculate_checksum
from .installer import TerraformInstaller

logger = logging.getLogger(__name__)


class ExecutableCache:
    """Map version identifiers or source refs to installed executables"""

    def __init__(self, cache_file: Optional[Union[str, Path]] = None,
                 installer: Optional[TerraformInstaller] = None,
                 root_dir: Optional[Union[str, Path]] = None) -> None:
        if cache_file:
            self.cache_file = Path(cache_file)
        else:
            self.cache_file = Path.home() / CACHE_DIR_USER / CACHE_FILE_NAME
        self.lock_file = self.cache_file.with_name(self.cache_file.name + CACHE_LOCK_SUFFIX)
        self.root_dir = Path(root_dir) if root_dir else self.cache_file.parent / "bin"
        self.installer = installer or TerraformInstaller()
        self.data = self.load()

    def load(self) -> Dict[str, Dict[str, Any]]:
        """Load the cache file with proper error handling"""
        if not self.cache_file.exists():
            return {"executables": {}}
        try:
            with open(self.cache_file, 'r') as f:
                data = json.load(f)
        except json.JSONDecodeError as e:
            raise ValidationError(f"Invalid JSON in cache file: {e}")
        except OSError as e:
            raise InstallationError(f"Cannot read cache file: {e}")
        if not isinstance(data, dict) or not isinstance(data.get("executables"), dict):
            raise ValidationError("Cache file missing required keys")
        return data

    @contextmanager
    def _locked(self):
        """Hold an exclusive lock on the sidecar lock file"""
        self.cache_file.parent.mkdir(parents=True, exist_ok=True)
        with open(self.lock_file, 'a') as lock:
            fcntl.flock(lock.fileno(), fcntl.LOCK_EX)
            try:
                yield
            finally:
                fcntl.flock(lock.fileno(), fcntl.LOCK_UN)

    def save(self) -> None:
        """Write the cache atomically; callers hold the lock"""
        try:
            temp_fd, temp_path = tempfile.mkstemp(
                dir=self.cache_file.parent,
                prefix=".cache_",
                suffix=".tmp"
            )
            try:
                with os.fdopen(temp_fd, 'w') as f:
                    json.dump(self.data, f, indent=2, default=str)
                    f.flush()
                    os.fsync(f.fileno())

                os.chmod(temp_path, 0o644)
                os.replace(temp_path, self.cache_file)
            except Exception:
                try:
                    os.unlink(temp_path)
                except OSError:
                    pass
                raise
        except OSError as e:
            raise InstallationError(f"Failed to save cache: {e}")

    def entries(self) -> Dict[str, Dict[str, Any]]:
        return dict(self.data["executables"])

    def get(self, key: str) -> Optional[Path]:
        """Return the recorded executable for key if it still exists"""
        entry = self.data["executables"].get(key)
        if entry is None:
            return None
        path = Path(entry["path"])
        if not path.is_file():
            logger.debug("Cached executable for %s is gone: %s", key, path)
            return None
        return path

    def record(self, key: str, path: Union[str, Path]) -> None:
        """Add an entry, merging with whatever other processes recorded"""
        path = Path(path)
        entry = {
            "path": str(path),
            "checksum": calculate_checksum(path),
            "timestamp": datetime.now().isoformat(),
        }
        with self._locked():
            self.data = self.load()
            self.data["executables"][key] = entry
            self.save()

    def version(self, version: str) -> Path:
        """Return an executable for version, acquiring it on a cache miss"""
        cached = self.get(version)
        if cached is not None:
            logger.debug("Using cached Terraform %s at %s", version, cached)
            return cached

        if '/' in version or '\\' in version or '..' in version:
            raise ValidationError(f"Invalid version for a cache directory: {version}")

        install_dir = self.root_dir / version
        install_dir.mkdir(parents=True, exist_ok=True)
        path = self.installer.acquire(version, install_dir)
        self.record(version, path)
        return path

    def git_ref(self, ref: str) -> Path:
        """Return the executable previously built from a source ref"""
        cached = self.get(ref)
        if cached is None:
            raise InstallationError(
                f"No executable recorded for {ref}; build it and call record()"
            )
        return cached
