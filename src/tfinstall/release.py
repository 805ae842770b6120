"""
Release naming and URL construction for Terraform distributions
"""

import platform as _platform
from dataclasses import dataclass
from typing import Optional

from .constants import RELEASES_URL, PRODUCT_NAME


_OS_NAMES = {
    "linux": "linux",
    "darwin": "darwin",
    "windows": "windows",
    "freebsd": "freebsd",
    "openbsd": "openbsd",
    "sunos": "solaris",
}

_ARCH_NAMES = {
    "x86_64": "amd64",
    "amd64": "amd64",
    "i386": "386",
    "i686": "386",
    "x86": "386",
    "aarch64": "arm64",
    "arm64": "arm64",
    "armv6l": "arm",
    "armv7l": "arm",
}


@dataclass(frozen=True)
class Platform:
    """Operating system and CPU architecture in release naming"""

    os: str
    arch: str

    @classmethod
    def current(cls) -> "Platform":
        """Resolve the platform of the running interpreter"""
        system = _platform.system().lower()
        machine = _platform.machine().lower()
        return cls(
            os=_OS_NAMES.get(system, system),
            arch=_ARCH_NAMES.get(machine, machine),
        )

    @property
    def executable_name(self) -> str:
        if self.os == "windows":
            return PRODUCT_NAME + ".exe"
        return PRODUCT_NAME


@dataclass(frozen=True)
class ArtifactLocation:
    """URLs of the manifest, its signature and the release archive"""

    version: str
    platform: Platform
    base_url: str = RELEASES_URL

    @classmethod
    def for_release(cls, version: str, platform: Optional[Platform] = None,
                    base_url: str = RELEASES_URL) -> "ArtifactLocation":
        return cls(version, platform or Platform.current(), base_url.rstrip("/"))

    @property
    def sums_filename(self) -> str:
        return f"{PRODUCT_NAME}_{self.version}_SHA256SUMS"

    @property
    def sums_sig_filename(self) -> str:
        return self.sums_filename + ".sig"

    @property
    def sums_url(self) -> str:
        return f"{self.base_url}/{self.version}/{self.sums_filename}"

    @property
    def sums_sig_url(self) -> str:
        return f"{self.base_url}/{self.version}/{self.sums_sig_filename}"

    @property
    def archive_filename(self) -> str:
        return (f"{PRODUCT_NAME}_{self.version}_"
                f"{self.platform.os}_{self.platform.arch}.zip")

    @property
    def archive_url(self) -> str:
        """Archive URL carrying a checksum reference to the manifest"""
        return (f"{self.base_url}/{self.version}/{self.archive_filename}"
                f"?checksum=file:{self.sums_url}")
