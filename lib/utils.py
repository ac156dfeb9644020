# =============================================================================
# lib/utils.py - Shared Utilities
# =============================================================================
# Common utilities used across the application.
# =============================================================================


def redact_uri(uri: str) -> str:
    """
    Hide the credentials part of a connection URI.

    Handles multi-host MongoDB URIs, where the authority section holds a
    comma-separated host list.

    Example:
        redact_uri("mongodb://user:pw@db1,db2/app")  # "mongodb://***@db1,db2/app"
        redact_uri("mongodb://localhost/app")        # unchanged
    """
    scheme, sep, rest = uri.partition("://")
    if not sep:
        return uri

    authority, slash, path = rest.partition("/")
    if "@" not in authority:
        return uri

    hosts = authority.rsplit("@", 1)[1]
    return f"{scheme}://***@{hosts}{slash}{path}"
