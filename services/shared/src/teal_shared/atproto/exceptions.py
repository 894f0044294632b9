"""AT Protocol client exceptions."""


class AtprotoClientError(Exception):
    """Base exception for AT Protocol client errors."""


class AtprotoAuthError(AtprotoClientError):
    """The PDS rejected the credentials or the session token."""


class AtprotoRateLimitError(AtprotoClientError):
    """The PDS returned 429 Too Many Requests and retries were exhausted."""

    def __init__(self, retry_after: float | None = None) -> None:
        self.retry_after = retry_after
        msg = "PDS rate limit exceeded"
        if retry_after is not None:
            msg += f" (retry-after: {retry_after}s)"
        super().__init__(msg)


class AtprotoServerError(AtprotoClientError):
    """The PDS returned a 5xx server error and retries were exhausted."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"PDS server error: HTTP {status_code}" + (f": {detail}" if detail else ""))


class AtprotoRequestError(AtprotoClientError):
    """The PDS returned a non-retryable client error (4xx other than 401/429)."""

    def __init__(self, status_code: int, detail: str = "") -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"PDS request error: HTTP {status_code}" + (f": {detail}" if detail else ""))
