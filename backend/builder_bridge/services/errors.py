"""
Exceptions raised by the credential, ticket and billing services.

Routes translate these into HTTP responses; nothing below the route layer
imports FastAPI for error handling.
"""


class CredentialProtocolError(Exception):
    """Base exception for credential protocol errors."""
    status_code = 500
    public_message = "Internal server error"


class UnauthenticatedError(CredentialProtocolError):
    """No verified admin session accompanies the request."""
    status_code = 401
    public_message = "Unauthorized"


class InvalidCredentialError(CredentialProtocolError):
    """Access key or ticket is unknown, used, or otherwise unusable."""
    status_code = 401
    public_message = "Authentication failed"


class TicketExpiredError(InvalidCredentialError):
    """Ticket was found but its expiry has passed."""
    pass


class MissingFieldError(CredentialProtocolError):
    """A required request field is absent."""
    status_code = 400

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} is required")

    @property
    def public_message(self) -> str:
        return f"{self.field[:1].upper()}{self.field[1:]} required"


class InvalidPlanError(CredentialProtocolError):
    """Requested plan is not a billable plan."""
    status_code = 400

    def __init__(self, plan: str):
        self.plan = plan
        super().__init__(f"Invalid plan: {plan!r}")

    @property
    def public_message(self) -> str:
        return "Invalid plan"


class UpstreamFailureError(CredentialProtocolError):
    """The document store or Shopify failed; detail stays in server logs."""
    status_code = 500
    public_message = "Internal server error"
