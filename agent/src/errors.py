"""Error taxonomy shared by the governance tools.

Every failure carries the status code the tool layer reports and any extra
fields that belong in the `{"error": ...}` body next to the message.
"""

from typing import Any, Dict, Optional


class GovernanceError(Exception):
    """Base class for every failure a tool turns into an `{error}` body."""

    status: int = 500

    def __init__(self, message: str, *, details: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.details: Dict[str, Any] = dict(details or {})

    def to_body(self) -> Dict[str, Any]:
        return {"error": self.message, **self.details}


class InvalidInputError(GovernanceError):
    """Missing or malformed parameter."""

    status = 400


class NotFoundError(GovernanceError):
    """The primary resource a read endpoint asked for does not exist."""

    status = 404


class PreconditionError(GovernanceError):
    """A user-correctable on-chain condition blocks the action."""

    status = 200


class PermissionDeniedError(GovernanceError):
    status = 403


class ConfigurationError(GovernanceError):
    """A required contract id or endpoint is not configured."""

    status = 500


class UpstreamError(GovernanceError):
    """The RPC endpoint failed or answered with something unusable."""

    status = 500
