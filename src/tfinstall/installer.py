"""
Verified download of Terraform release binaries
"""

import os
import logging
import tempfile
from pathlib import Path
from threading import Event
from typing import Callable, Mapping, Optional, Union

from .constants import (
    DEFAULT_PERMISSIONS,
    INSTALL_DIR_PREFIX,
    IS_WINDOWS,
    RELEASES_URL,
    SCRATCH_DIR_PREFIX,
)
from .exceptions import DirectoryUnavailable, ExecutableInvalid, FetchFailed
from .getter import Client, Getter
from .release import ArtifactLocation, Platform
from .verify import verify_sums_signature

logger = logging.getLogger(__name__)

# Called with the manifest bytes and the path of its detached signature
Verifier = Callable[[bytes, Path], object]


def ensure_install_dir(install_dir: Optional[Union[str, Path]] = None) -> Path:
    """Return a directory to install Terraform into.

    Without an argument a fresh temporary directory is created; the caller
    owns it and is responsible for removing it. A given directory must
    already exist and be usable, it is never created.
    """
    if not install_dir:
        path = Path(tempfile.mkdtemp(prefix=INSTALL_DIR_PREFIX))
        logger.debug("Created install directory %s", path)
        return path

    path = Path(install_dir)
    try:
        path.stat()
    except OSError as e:
        raise DirectoryUnavailable(path, e) from e
    if not path.is_dir():
        raise DirectoryUnavailable(path, "not a directory")
    if not os.access(path, os.R_OK | os.W_OK | os.X_OK):
        raise DirectoryUnavailable(path, "permission denied")
    return path


class TerraformInstaller:
    """Download Terraform releases whose checksums are signed by HashiCorp"""

    def __init__(self, base_url: str = RELEASES_URL,
                 getters: Optional[Mapping[str, Getter]] = None,
                 verifier: Optional[Verifier] = None,
                 platform: Optional[Platform] = None) -> None:
        self.base_url = base_url
        self.getters = getters
        self.verifier = verifier or verify_sums_signature
        self.platform = platform

    def acquire(self, version: str,
                install_dir: Optional[Union[str, Path]] = None,
                cancel: Optional[Event] = None) -> Path:
        """Install Terraform ``version`` and return the executable path.

        The signature of the checksum manifest is verified before the
        release archive is requested, and the archive is only unpacked once
        its checksum matches the verified manifest.
        """
        tf_dir = ensure_install_dir(install_dir)
        location = ArtifactLocation.for_release(
            version, self.platform or Platform.current(), self.base_url
        )
        client = Client(self.getters, cancel=cancel)

        with tempfile.TemporaryDirectory(prefix=SCRATCH_DIR_PREFIX) as sums_dir:
            sums_path = Path(sums_dir) / location.sums_filename
            sums_sig_path = Path(sums_dir) / location.sums_sig_filename

            logger.info("Fetching checksums for Terraform %s", version)
            client.get_file(location.sums_url, sums_path)
            client.get_file(location.sums_sig_url, sums_sig_path)

            try:
                manifest = sums_path.read_bytes()
            except OSError as e:
                raise FetchFailed(location.sums_url, e) from e

            self.verifier(manifest, sums_sig_path)
            logger.info("Verified signature of %s", location.sums_filename)

            # the archive is checked against exactly the bytes that were verified
            client.checksum_files[location.sums_url] = manifest

            logger.info("Downloading %s into %s", location.archive_filename, tf_dir)
            client.get_dir(location.archive_url, tf_dir)

        target = tf_dir / location.platform.executable_name
        self.verify_installation(target, location.archive_url)
        logger.info("Installed Terraform %s at %s", version, target)
        return target

    def verify_installation(self, target: Path, locator: str) -> None:
        """Check the unpacked executable and make it runnable"""
        if target.is_symlink():
            raise ExecutableInvalid(f"{target} is a symlink")
        if not target.is_file():
            raise FetchFailed(
                locator, FileNotFoundError(f"archive did not contain {target.name}")
            )
        if not IS_WINDOWS:
            target.chmod(DEFAULT_PERMISSIONS)


def download_with_verification(version: str,
                               install_dir: Optional[Union[str, Path]] = None,
                               cancel: Optional[Event] = None) -> Path:
    """Install Terraform ``version`` from releases.hashicorp.com"""
    return TerraformInstaller().acquire(version, install_dir, cancel=cancel)
