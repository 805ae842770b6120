"""
Fetch client with pluggable transports and checksum enforcement

A source locator is a URL that may carry a ``checksum`` query parameter::

    https://host/file.zip?checksum=sha256:<hex>
    https://host/file.zip?checksum=<hex>
    https://host/file.zip?checksum=file:https://host/SHA256SUMS

The parameter is stripped before the transport sees the URL. Fetched bytes
land in a temporary location first and only reach the destination once the
checksum matches.
"""

import os
import re
import shutil
import hashlib
import logging
import tarfile
import tempfile
import zipfile
from dataclasses import dataclass
from pathlib import Path, PurePosixPath
from threading import Event
from typing import Dict, Mapping, Optional, Tuple, Union
from urllib.parse import urlsplit, urlunsplit, unquote_plus

import requests

from . import __version__
from .constants import (
    CHUNK_SIZE,
    CONNECT_TIMEOUT,
    READ_TIMEOUT,
    USER_AGENT_PREFIX,
)
from .exceptions import Cancelled, ChecksumMismatch, FetchFailed

logger = logging.getLogger(__name__)

# Hex digest length -> algorithm, for checksums given without a type
_ALGORITHMS_BY_LENGTH = {
    32: "md5",
    40: "sha1",
    64: "sha256",
    128: "sha512",
}

_ARCHIVE_SUFFIXES = (".zip", ".tar.gz", ".tgz", ".tar")

_BSD_LINE = re.compile(r"^(\w+) \((.+)\) = ([0-9a-fA-F]+)$")


@dataclass(frozen=True)
class FileChecksum:
    """Expected digest for a fetched file"""

    algorithm: str
    value: str

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.value}"


def calculate_checksum(file_path: Union[str, Path], algorithm: str = "sha256") -> str:
    """Calculate the hex digest of a file"""
    digest = hashlib.new(algorithm)
    with open(file_path, "rb") as f:
        for byte_block in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(byte_block)
    return digest.hexdigest()


def split_checksum(src: str) -> Tuple[str, Optional[str]]:
    """Separate the ``checksum`` query parameter from a source locator"""
    parts = urlsplit(src)
    checksum = None
    remaining = []
    # other parameters are passed through byte for byte
    for pair in filter(None, parts.query.split("&")):
        key, _, value = pair.partition("=")
        if unquote_plus(key) == "checksum":
            checksum = unquote_plus(value)
        else:
            remaining.append(pair)
    url = urlunsplit(parts._replace(query="&".join(remaining)))
    return url, checksum


def parse_checksum_value(value: str) -> FileChecksum:
    """Parse ``<type>:<hex>`` or a bare hex digest"""
    if ":" in value:
        algorithm, digest = value.split(":", 1)
        algorithm = algorithm.lower()
        if algorithm not in _ALGORITHMS_BY_LENGTH.values():
            raise ValueError(f"unsupported checksum type: {algorithm}")
    else:
        digest = value
        algorithm = _guess_algorithm(digest)
    return FileChecksum(algorithm, digest.strip().lower())


def _guess_algorithm(digest: str) -> str:
    try:
        return _ALGORITHMS_BY_LENGTH[len(digest.strip())]
    except KeyError:
        raise ValueError(f"cannot guess checksum type from {len(digest)} characters")


def checksum_from_manifest(manifest: bytes, filename: str) -> Optional[FileChecksum]:
    """Find the entry for ``filename`` in a checksum manifest.

    Understands GNU coreutils lines (``<hex>  [*]name``) and BSD style
    lines (``SHA256 (name) = <hex>``). Returns None when no line matches.
    """
    for raw_line in manifest.decode("utf-8", errors="replace").splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue

        bsd = _BSD_LINE.match(line)
        if bsd:
            algorithm, name, digest = bsd.groups()
            if _normalize_name(name) == filename:
                return FileChecksum(algorithm.lower(), digest.lower())
            continue

        fields = line.split(None, 1)
        if len(fields) != 2:
            continue
        digest, name = fields
        if _normalize_name(name) == filename:
            return FileChecksum(_guess_algorithm(digest), digest.lower())
    return None


def _normalize_name(name: str) -> str:
    name = name.strip().lstrip("*")
    if name.startswith("./"):
        name = name[2:]
    return name


def is_archive(filename: str) -> bool:
    return filename.lower().endswith(_ARCHIVE_SUFFIXES)


class Getter:
    """Transport capability: stream one URL into one local file.

    Implementations raise FetchFailed for transport errors and Cancelled
    when ``cancel`` is set during the transfer.
    """

    def get_file(self, url: str, dst_path: Path,
                 cancel: Optional[Event] = None) -> None:
        raise NotImplementedError


class HttpGetter(Getter):
    """HTTP(S) transport backed by a requests session"""

    def __init__(self, session: Optional[requests.Session] = None,
                 timeout: Tuple[float, float] = (CONNECT_TIMEOUT, READ_TIMEOUT),
                 user_agent: Optional[str] = None) -> None:
        # requests reads ~/.netrc for credentials when trust_env is on
        self.session = session or requests.Session()
        self.session.headers["User-Agent"] = (
            user_agent or f"{USER_AGENT_PREFIX}/{__version__}"
        )
        self.timeout = timeout

    def get_file(self, url: str, dst_path: Path,
                 cancel: Optional[Event] = None) -> None:
        logger.debug("GET %s -> %s", url, dst_path)
        try:
            response = self.session.get(url, stream=True, timeout=self.timeout)
            try:
                response.raise_for_status()
                with open(dst_path, "wb") as f:
                    for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                        if cancel is not None and cancel.is_set():
                            raise Cancelled(f"download of {url} cancelled")
                        if chunk:
                            f.write(chunk)
            finally:
                response.close()
        except requests.RequestException as e:
            raise FetchFailed(url, e) from e


class Client:
    """Retrieve locators through scheme-keyed getters.

    ``checksum_files`` maps checksum-manifest URLs to bytes the caller
    already holds, so ``checksum=file:<url>`` references to them are
    resolved without another fetch.
    """

    def __init__(self, getters: Optional[Mapping[str, Getter]] = None,
                 cancel: Optional[Event] = None,
                 checksum_files: Optional[Mapping[str, bytes]] = None) -> None:
        self.getters: Dict[str, Getter] = dict(
            getters if getters is not None else {"https": HttpGetter()}
        )
        self.cancel = cancel
        self.checksum_files: Dict[str, bytes] = dict(checksum_files or {})

    def get_file(self, src: str, dst: Union[str, Path]) -> Path:
        """Fetch ``src`` to exactly the file ``dst``"""
        dst = Path(dst)
        temp_target = dst.with_name(dst.name + ".tmp." + str(os.getpid()))
        try:
            self._fetch_verified(src, temp_target)
            try:
                os.replace(temp_target, dst)
            except OSError as e:
                raise FetchFailed(split_checksum(src)[0], e) from e
        except Exception:
            try:
                temp_target.unlink()
            except OSError:
                pass
            raise
        return dst

    def get_dir(self, src: str, dst_dir: Union[str, Path]) -> Path:
        """Fetch ``src`` into the directory ``dst_dir``, unpacking archives"""
        dst_dir = Path(dst_dir)
        url, _ = split_checksum(src)
        filename = _url_basename(url)

        with tempfile.TemporaryDirectory(prefix="tfinstall-get") as work_dir:
            downloaded = Path(work_dir) / filename
            self._fetch_verified(src, downloaded)
            self._check_cancel(url)
            try:
                if is_archive(filename):
                    logger.debug("Unpacking %s into %s", filename, dst_dir)
                    extract_archive(downloaded, dst_dir)
                else:
                    shutil.move(str(downloaded), str(dst_dir / filename))
            except OSError as e:
                raise FetchFailed(url, e) from e
        return dst_dir

    def _fetch_verified(self, src: str, dst_path: Path) -> None:
        url, checksum = split_checksum(src)
        expected = None
        if checksum:
            expected = self._resolve_checksum(checksum, url)

        self._transfer(url, dst_path)

        if expected is not None:
            actual = calculate_checksum(dst_path, expected.algorithm)
            if actual != expected.value:
                logger.warning("Checksum mismatch for %s", url)
                dst_path.unlink()
                raise ChecksumMismatch(str(expected), f"{expected.algorithm}:{actual}", url)
            logger.debug("Checksum verified for %s (%s)", url, expected)

    def _resolve_checksum(self, checksum: str, url: str) -> FileChecksum:
        if not checksum.startswith("file:"):
            try:
                return parse_checksum_value(checksum)
            except ValueError as e:
                raise FetchFailed(url, e) from e

        sums_url = checksum[len("file:"):]
        manifest = self._checksum_file(sums_url)
        filename = _url_basename(url)
        try:
            expected = checksum_from_manifest(manifest, filename)
        except ValueError as e:
            raise FetchFailed(sums_url, e) from e
        if expected is None:
            raise ChecksumMismatch(None, None, filename)
        return expected

    def _checksum_file(self, sums_url: str) -> bytes:
        if sums_url in self.checksum_files:
            return self.checksum_files[sums_url]
        with tempfile.TemporaryDirectory(prefix="tfinstall-sums") as work_dir:
            path = Path(work_dir) / (_url_basename(sums_url) or "checksums")
            self._transfer(sums_url, path)
            return path.read_bytes()

    def _transfer(self, url: str, dst_path: Path) -> None:
        self._check_cancel(url)
        getter = self._getter_for(url)
        try:
            getter.get_file(url, dst_path, cancel=self.cancel)
        except Cancelled as e:
            raise FetchFailed(url, e) from e
        except OSError as e:
            raise FetchFailed(url, e) from e

    def _getter_for(self, url: str) -> Getter:
        scheme = urlsplit(url).scheme
        try:
            return self.getters[scheme]
        except KeyError:
            raise FetchFailed(url, ValueError(f"no getter for scheme {scheme!r}"))

    def _check_cancel(self, url: str) -> None:
        if self.cancel is not None and self.cancel.is_set():
            raise FetchFailed(url, Cancelled("acquisition cancelled"))


def _url_basename(url: str) -> str:
    return PurePosixPath(urlsplit(url).path).name


def _safe_member_path(dst_dir: Path, name: str) -> Path:
    """Resolve an archive member name, rejecting escapes from dst_dir"""
    member = PurePosixPath(name)
    if member.is_absolute() or ".." in member.parts:
        raise OSError(f"archive member {name!r} escapes destination")
    return dst_dir.joinpath(*member.parts)


def extract_archive(archive_path: Path, dst_dir: Path) -> None:
    """Unpack a zip or tar archive into dst_dir"""
    if archive_path.name.lower().endswith(".zip"):
        with zipfile.ZipFile(archive_path) as zf:
            for info in zf.infolist():
                target = _safe_member_path(dst_dir, info.filename)
                zf.extract(info, dst_dir)
                mode = (info.external_attr >> 16) & 0o777
                if mode and not info.is_dir():
                    target.chmod(mode)
        return

    with tarfile.open(archive_path) as tf:
        members = tf.getmembers()
        for member in members:
            _safe_member_path(dst_dir, member.name)
            if member.issym() or member.islnk() or member.isdev():
                raise OSError(f"archive member {member.name!r} is not a regular file")
        if hasattr(tarfile, "data_filter"):
            tf.extractall(dst_dir, members=members, filter="data")
        else:
            tf.extractall(dst_dir, members=members)
