from urllib.parse import urlparse

from mediarelay.core.errors import InvalidInput

ALLOWED_SCHEMES = ("http", "https")


def resolve_url(url) -> str:
    """
    Validate and normalise a caller-supplied URL.

    Args:
        url: The raw input.

    Returns:
        The trimmed URL.

    Raises:
        InvalidInput: if the value is not an absolute http(s) URL.
    """
    if not isinstance(url, str) or not url.strip():
        raise InvalidInput("URL is required")

    url = url.strip()
    try:
        parsed = urlparse(url)
    except ValueError:
        raise InvalidInput("Invalid URL format")

    if parsed.scheme.lower() not in ALLOWED_SCHEMES:
        raise InvalidInput(f"Unsupported URL scheme '{parsed.scheme or 'none'}'; only HTTP and HTTPS are supported")
    if not parsed.hostname:
        raise InvalidInput("Invalid URL format: missing host")
    return url
