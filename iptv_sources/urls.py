"""
URL helpers shared by the playlist parser and the source validator.
"""
from urllib.parse import urlsplit, urlunsplit, parse_qsl, urlencode


def is_valid_url(url) -> bool:
    """Return True when url is an absolute URL with a scheme and a host."""
    if not url or not isinstance(url, str):
        return False
    # urlsplit silently drops tabs and newlines; HTTP clients reject them
    if any(ord(char) < 32 or ord(char) == 127 for char in url.strip()):
        return False
    try:
        parts = urlsplit(url.strip())
        # Accessing .port raises for malformed ports such as "host:abc"
        parts.port
    except ValueError:
        return False
    return bool(parts.scheme) and bool(parts.netloc) and parts.scheme.isascii()


def mask_query_param(url: str, name: str = "password") -> str:
    """Replace the value of a query parameter so URLs can be logged."""
    parts = urlsplit(url)
    query = [
        (key, "***" if key == name else value)
        for key, value in parse_qsl(parts.query, keep_blank_values=True)
    ]
    return urlunsplit(parts._replace(query=urlencode(query, safe="*")))
