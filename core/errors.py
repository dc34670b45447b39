POOL_TIMEOUT_HINT = (
    "Database connection pool timed out. Check if database is accessible and credentials are correct."
)


class ConfigurationError(RuntimeError):
    """Required configuration (credentials, paths, repo names) is missing. Maps to 503."""
    status_code = 503


class BadRequestError(ValueError):
    status_code = 400


class NotFoundError(LookupError):
    status_code = 404


class ConnectionUnavailableError(RuntimeError):
    """A connection could not be acquired. The driver error is kept as __cause__."""
    status_code = 500


def _next_in_chain(exc):
    return exc.__cause__ or (None if exc.__suppress_context__ else exc.__context__)


def root_cause(exc):
    seen = {id(exc)}
    current = exc
    nxt = _next_in_chain(current)
    while nxt is not None and id(nxt) not in seen:
        seen.add(id(nxt))
        current = nxt
        nxt = _next_in_chain(current)
    return current


def describe(exc) -> str:
    return f"{type(exc).__name__}: {exc}"


def build_error_envelope(exc, context: str) -> dict:
    """
    Error body for 500 responses: {error, message, cause, rootCause, hint?}.
    cause is the direct cause's message ("Unknown" when there is none),
    rootCause names the deepest exception in the chain.
    """
    message = str(exc)
    cause = _next_in_chain(exc)
    body = {
        "error": context,
        "message": message,
        "cause": str(cause) if cause is not None else "Unknown",
        "rootCause": describe(root_cause(exc)),
    }
    if "Connection is not available" in message or "QueuePool limit" in message:
        body["hint"] = POOL_TIMEOUT_HINT
    return body
