"""MedVerify-Engine exception hierarchy.

Expected negative verification outcomes (unknown product, replayed QR,
expired QR, ledger outage) are values, not exceptions. The classes here
cover malformed input and infrastructure failures.
"""


class MedVerifyError(Exception):
    """Base exception for all MedVerify errors."""

    status_code = 500

    def __init__(self, message: str = "", code: str = "MEDVERIFY_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)


class InvalidQrFormatError(MedVerifyError):
    """Raised when a scanned QR payload cannot be parsed or its hash is malformed."""

    status_code = 400

    def __init__(self, message: str = "Invalid QR code format"):
        super().__init__(message, code="INVALID_QR_FORMAT")


class InvalidProductIdError(MedVerifyError):
    """Raised when a product identifier is missing or blank."""

    status_code = 400

    def __init__(self, message: str = "A product ID is required"):
        super().__init__(message, code="INVALID_PRODUCT_ID")


class InvalidProductDataError(MedVerifyError):
    """Raised when registration data breaks a record invariant."""

    status_code = 400

    def __init__(self, message: str = "Invalid product data"):
        super().__init__(message, code="INVALID_PRODUCT_DATA")


class ProductNotFoundError(MedVerifyError):
    """Raised by catalogue lookups (not by verification) for unknown products."""

    status_code = 404

    def __init__(self, message: str = "Medicine not found"):
        super().__init__(message, code="NOT_FOUND")


class ProductConflictError(MedVerifyError):
    """Raised when a product ID is already registered."""

    status_code = 409

    def __init__(self, message: str = "Product is already registered"):
        super().__init__(message, code="CONFLICT")


class RegistryUnavailableError(MedVerifyError):
    """Raised when the registry store cannot be reached.

    Distinct from a registry miss: callers must never see an outage
    reported as an unregistered product.
    """

    status_code = 503

    def __init__(self, message: str = "Product registry is temporarily unavailable"):
        super().__init__(message, code="REGISTRY_UNAVAILABLE")


class LedgerError(MedVerifyError):
    """Base for ledger gateway failures."""

    status_code = 502

    def __init__(self, message: str = "Ledger error", code: str = "LEDGER_ERROR"):
        super().__init__(message, code=code)


class LedgerUnavailableError(LedgerError):
    """Raised on ledger timeouts and transport errors."""

    status_code = 503

    def __init__(self, message: str = "Ledger is unavailable"):
        super().__init__(message, code="LEDGER_UNAVAILABLE")


class AlreadyAttestedError(LedgerError):
    """Raised when the ledger already holds an attestation for the subject."""

    status_code = 409

    def __init__(self, message: str = "Subject is already attested on the ledger"):
        super().__init__(message, code="ALREADY_ATTESTED")


class AuthenticationError(MedVerifyError):
    """Raised when a manufacturer/admin route is called without a valid API key."""

    status_code = 403

    def __init__(self, message: str = "Invalid API key"):
        super().__init__(message, code="FORBIDDEN")


class NotSupportedError(MedVerifyError):
    """Raised when the configured backend cannot serve the request."""

    status_code = 501

    def __init__(self, message: str = "Operation not supported"):
        super().__init__(message, code="NOT_SUPPORTED")
