"""Issuance error taxonomy.

Every failure aborts the enclosing operation; the unit of work rolls back
whatever the operation had written before raising.  Nothing here is
retried or downgraded inside the service.  Each class carries the HTTP
status and a stable ``code`` that the API error handler and the
``credential_mints_total`` metric use.
"""

from __future__ import annotations


class IssuanceError(Exception):
    """Base class for all errors surfaced by issuance and admin operations."""

    status_code = 400
    code = "issuance_error"


class Unauthorized(IssuanceError):
    """Raised when an admin-gated operation is called by a non-admin identity,
    or a mint is submitted by someone other than the receiver."""

    status_code = 403
    code = "unauthorized"


class AuthFailed(IssuanceError):
    """Raised when the mint proof does not authorize the requested mint."""

    status_code = 400
    code = "auth_failed"


class MalformedSignature(AuthFailed):
    """The signature bytes could not be decoded as an Ed25519 signature."""

    code = "malformed_signature"


class InvalidProof(AuthFailed):
    """The signature does not verify against the canonical challenge."""

    code = "invalid_proof"


class OracleError(IssuanceError):
    """Raised when the price oracle cannot produce a usable quote."""

    status_code = 502
    code = "oracle_error"


class NegativePrice(OracleError):
    """The quote's price is zero or negative."""

    code = "negative_price"


class PositiveExponent(OracleError):
    """The quote's exponent is zero or positive.

    Only quotes of the form ``magnitude * 10**-n`` with n > 0 are accepted.
    """

    code = "positive_exponent"


class OracleUnavailable(OracleError):
    """The oracle could not be reached or returned an unreadable response."""

    code = "oracle_unavailable"


class ArithmeticOverflow(IssuanceError):
    """Raised when fee arithmetic leaves the unsigned 64-bit range."""

    status_code = 422
    code = "arithmetic_overflow"


class CredentialAlreadyExists(IssuanceError):
    """Registry-level: a credential is already stored under the derived key."""

    status_code = 409
    code = "already_exists"


class DuplicateCredential(IssuanceError):
    """Mint-level: the receiver already holds a credential."""

    status_code = 409
    code = "duplicate_credential"


class CredentialNotFound(IssuanceError):
    """No credential is stored for the identity or key."""

    status_code = 404
    code = "not_found"


class InsufficientFunds(IssuanceError):
    """The ledger refused the fee debit."""

    status_code = 402
    code = "insufficient_funds"


class TransferDisabled(IssuanceError):
    """Credentials are soulbound; every transfer attempt raises this."""

    status_code = 409
    code = "transfer_disabled"
