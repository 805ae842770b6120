"""
Shared fixtures: an in-memory release mirror and helpers to build archives
"""

import io
import os
import sys
import shutil
import hashlib
import zipfile
from pathlib import Path

import pytest
import gnupg

# Add the parent directory to the path to import our module
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from src.tfinstall.getter import Getter
from src.tfinstall.exceptions import FetchFailed, SignatureInvalid
from src.tfinstall.release import ArtifactLocation, Platform


BASE_URL = "https://releases.example.com/terraform"
VERSION = "1.0.7"
LINUX_AMD64 = Platform("linux", "amd64")

requires_gpg = pytest.mark.skipif(shutil.which("gpg") is None, reason="gpg not installed")


def make_zip(files, mode=0o755):
    """Build zip bytes from a name -> content mapping"""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, "w") as zf:
        for name, content in files.items():
            info = zipfile.ZipInfo(name)
            info.external_attr = (0o100000 | mode) << 16
            zf.writestr(info, content)
    return buf.getvalue()


def sha256(data):
    return hashlib.sha256(data).hexdigest()


class FakeGetter(Getter):
    """Serves fixed bytes per URL and records every request"""

    def __init__(self, responses):
        self.responses = dict(responses)
        self.calls = []
        self.destinations = []

    def get_file(self, url, dst_path, cancel=None):
        self.calls.append(url)
        self.destinations.append(Path(dst_path))
        if url not in self.responses:
            raise FetchFailed(url, "404 Not Found")
        Path(dst_path).write_bytes(self.responses[url])


class FakeVerifier:
    """Accepts the manifest only when the signature equals the expected bytes"""

    def __init__(self, good_signature):
        self.good_signature = good_signature
        self.calls = []

    def __call__(self, manifest, sig_path):
        self.calls.append((manifest, Path(sig_path)))
        if Path(sig_path).read_bytes() != self.good_signature:
            raise SignatureInvalid("bad signature")
        return "FAKEFINGERPRINT"


class Release:
    """A published version on the fake mirror"""

    def __init__(self, version=VERSION, platform=LINUX_AMD64, binary=b"\x7fELF terraform"):
        self.location = ArtifactLocation.for_release(version, platform, BASE_URL)
        self.binary = binary
        self.archive = make_zip({"terraform": binary})
        self.manifest = (
            f"{sha256(b'other')}  terraform_{version}_darwin_amd64.zip\n"
            f"{sha256(self.archive)}  {self.location.archive_filename}\n"
        ).encode()
        self.signature = b"signed:" + sha256(self.manifest).encode()

    def responses(self):
        archive_url = self.location.archive_url.split("?", 1)[0]
        return {
            self.location.sums_url: self.manifest,
            self.location.sums_sig_url: self.signature,
            archive_url: self.archive,
        }


@pytest.fixture
def release():
    return Release()


@pytest.fixture
def fake_getter(release):
    return FakeGetter(release.responses())


@pytest.fixture
def fake_verifier(release):
    return FakeVerifier(release.signature)


def _generate_key(gpg, email):
    key_input = gpg.gen_key_input(
        key_type="RSA",
        key_length=2048,
        name_real="tfinstall test",
        name_email=email,
        no_protection=True,
    )
    key = gpg.gen_key(key_input)
    assert key.fingerprint, key.stderr
    return key.fingerprint


class Signer:
    """A throw-away OpenPGP key that signs like the release pipeline does"""

    def __init__(self, gpg, fingerprint):
        self.gpg = gpg
        self.fingerprint = fingerprint
        self.public_key = gpg.export_keys(fingerprint)

    def sign(self, data):
        signature = self.gpg.sign(data, keyid=self.fingerprint, detach=True, binary=True)
        assert signature.data, signature.stderr
        return signature.data


@pytest.fixture(scope="session")
def signers(tmp_path_factory):
    if shutil.which("gpg") is None:
        pytest.skip("gpg not installed")
    home = tmp_path_factory.mktemp("gnupg")
    gpg = gnupg.GPG(gnupghome=str(home))
    trusted = Signer(gpg, _generate_key(gpg, "release@example.com"))
    rogue = Signer(gpg, _generate_key(gpg, "rogue@example.com"))
    return trusted, rogue
