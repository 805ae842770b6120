"""
tfinstall: verified installation of Terraform release binaries
"""

__version__ = "0.1.0"

from .installer import TerraformInstaller, download_with_verification, ensure_install_dir
from .cache import ExecutableCache
from .release import ArtifactLocation, Platform
from .exceptions import (
    InstallationError,
    DirectoryUnavailable,
    FetchFailed,
    Cancelled,
    ValidationError,
    SignatureInvalid,
    ChecksumMismatch,
    ExecutableInvalid,
)

__all__ = [
    "TerraformInstaller",
    "download_with_verification",
    "ensure_install_dir",
    "ExecutableCache",
    "ArtifactLocation",
    "Platform",
    "InstallationError",
    "DirectoryUnavailable",
    "FetchFailed",
    "Cancelled",
    "ValidationError",
    "SignatureInvalid",
    "ChecksumMismatch",
    "ExecutableInvalid",
]
