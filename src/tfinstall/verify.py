"""
Detached signature verification of checksum manifests
"""

import logging
import tempfile
from pathlib import Path
from typing import Optional, Union

import gnupg

from .constants import PUBLIC_KEY_FILE_NAME
from .exceptions import SignatureInvalid

logger = logging.getLogger(__name__)

PUBLIC_KEY_PATH = Path(__file__).resolve().parent / PUBLIC_KEY_FILE_NAME


def load_public_key() -> str:
    """Read the bundled HashiCorp release key"""
    try:
        return PUBLIC_KEY_PATH.read_text(encoding="ascii")
    except (OSError, UnicodeDecodeError) as e:
        raise SignatureInvalid(f"cannot read trust anchor {PUBLIC_KEY_PATH}: {e}") from e


def verify_sums_signature(sums: Union[bytes, str, Path], sig_path: Union[str, Path],
                          public_key: Optional[str] = None) -> str:
    """Verify that sig_path is a detached signature of a checksum manifest.

    ``sums`` is either the manifest bytes or the path of the manifest file.

    The armored key is imported into a GnuPG home that lives only for the
    duration of this call, so no key-ring state is shared between calls.
    Returns the fingerprint of the signing key, raises SignatureInvalid
    otherwise.
    """
    armored = public_key if public_key is not None else load_public_key()

    if isinstance(sums, bytes):
        manifest = sums
        sums_name = "checksum manifest"
    else:
        sums_name = str(sums)
        try:
            manifest = Path(sums).read_bytes()
        except OSError as e:
            raise SignatureInvalid(f"cannot read checksum manifest: {e}") from e

    with tempfile.TemporaryDirectory(prefix="tfinstall-gnupg") as gnupg_home:
        try:
            gpg = gnupg.GPG(gnupghome=gnupg_home)
        except (OSError, ValueError) as e:
            raise SignatureInvalid(f"gpg is not available: {e}") from e

        imported = gpg.import_keys(armored)
        anchors = set(imported.fingerprints or [])
        if not anchors:
            raise SignatureInvalid("trust anchor contains no usable public key")

        verified = gpg.verify_data(str(sig_path), manifest)

    if not verified.valid:
        logger.warning("Signature check failed for %s: %s", sums_name, verified.status)
        raise SignatureInvalid(
            f"signature {sig_path} does not verify {sums_name}: {verified.status}"
        )
    signer = verified.pubkey_fingerprint or verified.fingerprint
    if signer not in anchors:
        logger.warning("Signature for %s made by untrusted key %s", sums_name, signer)
        raise SignatureInvalid(f"signature {sig_path} made by untrusted key {signer}")

    logger.debug("Checksum manifest %s signed by %s", sums_name, signer)
    return signer
