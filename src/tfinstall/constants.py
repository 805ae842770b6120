"""
Constants used throughout the tfinstall package
"""

import os

# Release distribution
RELEASES_URL = "https://releases.hashicorp.com/terraform"
PRODUCT_NAME = "terraform"
USER_AGENT_PREFIX = "HashiCorp-tfinstall"

# Trust anchor bundled with the package
PUBLIC_KEY_FILE_NAME = "hashicorp.asc"
PUBLIC_KEY_FINGERPRINT = "C874011F0AB405110D02105534365D9472D7468F"

# Directory constants
INSTALL_DIR_PREFIX = "tfexec"
SCRATCH_DIR_PREFIX = "tfinstall"
CACHE_FILE_NAME = "tfinstall-cache.json"
CACHE_DIR_USER = ".cache/tfinstall"
CACHE_LOCK_SUFFIX = ".lock"

# File operation constants
DEFAULT_PERMISSIONS = 0o755
CHUNK_SIZE = 4096

# Network constants (seconds)
CONNECT_TIMEOUT = 10
READ_TIMEOUT = 60

# Platform-specific constants
IS_WINDOWS = os.name == 'nt'
