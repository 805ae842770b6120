"""
Custom exceptions for tfinstall
"""


class InstallationError(Exception):
    """Base exception for installation errors"""
    pass


class DirectoryUnavailable(InstallationError):
    """Raised when the install directory cannot be used"""

    def __init__(self, path, cause=None):
        self.path = path
        self.cause = cause
        message = f"could not access directory {path} for installing Terraform"
        if cause is not None:
            message += f": {cause}"
        super().__init__(message)


class FetchFailed(InstallationError):
    """Raised when retrieving a locator fails at the transport level"""

    def __init__(self, locator, cause=None):
        self.locator = locator
        self.cause = cause
        super().__init__(f"error fetching {locator}: {cause}")


class Cancelled(InstallationError):
    """Raised as the cause of a fetch aborted by a cancellation signal"""
    pass


class ValidationError(InstallationError):
    """Raised when an integrity check fails"""
    pass


class SignatureInvalid(ValidationError):
    """Raised when the checksum manifest is not signed by the trust anchor"""
    pass


class ExecutableInvalid(ValidationError):
    """Raised when the unpacked executable is not a regular file"""
    pass


class ChecksumMismatch(ValidationError):
    """Raised when fetched bytes do not match the expected checksum"""

    def __init__(self, expected, actual, locator=None):
        self.expected = expected
        self.actual = actual
        self.locator = locator
        if expected is None:
            message = f"no checksum found for {locator}"
        else:
            message = f"checksum mismatch for {locator}: expected {expected}, got {actual}"
        super().__init__(message)
