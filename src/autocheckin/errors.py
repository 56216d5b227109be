"""Error hierarchy for check-in failure classification.

Transient failures (network) may be retried by tenacity decorators on
idempotent portal GETs. Permanent failures signal that the portal contract
changed or the remote side refused the request; retrying will not help.

Example usage with tenacity:
    @retry(retry=retry_if_exception_type(TransientError), stop=stop_after_attempt(2))
    def fetch_listing(class_id: str):
        ...
"""


class CheckinError(Exception):
    """Base exception for all check-in errors."""

    pass


class TransientError(CheckinError):
    """Temporary failure that may succeed on retry."""

    pass


class NetworkError(TransientError):
    """Transport or connection failure talking to the portal or the webhook.

    Examples: DNS failure, connection reset, timeout, HTTP 5xx.
    """

    pass


class PermanentError(CheckinError):
    """Failure that won't succeed on retry."""

    pass


class ExtractionError(PermanentError):
    """Expected markup or parameter not found in a portal page.

    Usually means the portal changed its HTML or script layout.
    """

    pass


class ParseError(PermanentError):
    """Malformed JSON or HTML in a response."""

    pass


class AuthError(PermanentError):
    """Webhook credentials rejected - no access token was issued."""

    pass


class RemoteRejection(PermanentError):
    """Remote side answered with a non-success status or body."""

    pass


class TaskNotFoundError(PermanentError):
    """No stored task carries the requested id."""

    pass
