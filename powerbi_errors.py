class PowerBIError(Exception):
    """Base exception for Power BI refresh errors."""
    pass


class AuthenticationError(PowerBIError):
    """Token exchange with Azure AD failed or returned an unusable response."""
    pass


class TransportError(PowerBIError):
    """Network or serialization failure talking to Azure AD or Power BI."""
    pass


class RequestError(PowerBIError):
    """Power BI answered with an HTTP error status."""

    def __init__(self, status_code: int, body: str, message: str = None):
        self.status_code = status_code
        self.body = body
        super().__init__(message or f"Request failed: {status_code} - {body}")


class ProtocolError(PowerBIError):
    """Power BI response does not match the documented contract."""
    pass


class RefreshTimeoutError(PowerBIError, TimeoutError):
    """The refresh did not reach a terminal state within the wait timeout."""

    def __init__(self, request_id: str, timeout: float, last_record=None):
        self.request_id = request_id
        self.timeout = timeout
        self.last_record = last_record
        last = f"'{last_record.status}'" if last_record is not None else "none observed"
        super().__init__(
            f"Refresh '{request_id}' did not finish within {timeout:.0f} seconds. Last status: {last}"
        )


class RefreshFailedError(PowerBIError):
    """
    The refresh finished, but with a status other than Completed.

    The request/poll exchange itself succeeded; ``record`` and ``output`` hold
    what the service reported so callers can surface it.
    """

    def __init__(self, record, output=None):
        self.record = record
        self.status = record.status
        self.extended_status = record.extended_status
        self.output = output
        super().__init__(
            f"Refresh '{record.request_id}' failed with status '{record.status}' "
            f"(extended status: {record.extended_status}) with response {record}"
        )
