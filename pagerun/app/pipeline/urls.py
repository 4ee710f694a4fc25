"""
Target url canonicalization.

Canonical form, for hierarchical schemes (http, https, ws, wss, ftp,
file): lower-cased scheme and host, default port dropped, "." and ".."
path segments resolved, empty path rendered as "/". Query and fragment
are preserved as given.

Only file urls may omit the host. Urls of any other scheme
("about:blank", "data:...") are opaque: the scheme is lower-cased and
the rest is kept verbatim.
"""

from __future__ import annotations

from urllib.parse import urlsplit, urlunsplit

from pagerun.app.errors import InvalidTarget

_DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
    "ws": 80,
    "wss": 443,
    "ftp": 21,
}

# Schemes whose urls always carry an authority component.
_HIERARCHICAL_SCHEMES = frozenset(_DEFAULT_PORTS) | {"file"}

# Code points that can never appear in a host name.
_FORBIDDEN_HOST_CHARS = frozenset(" \t\n\r#%/:<>?@[\\]^|")


def remove_dot_segments(path: str) -> str:
    """Resolve "." and ".." segments of an absolute path (RFC 3986 5.2.4)."""
    segments = path.split("/")
    output = []
    for segment in segments[1:]:
        if segment == ".":
            continue
        if segment == "..":
            if output:
                output.pop()
            continue
        output.append(segment)

    # a trailing "." or ".." still denotes a directory
    if segments[-1] in (".", ".."):
        output.append("")

    return "/" + "/".join(output)


def _check_host(url: str, hostname: str) -> None:
    if ":" in hostname:
        # bracketed IPv6 literal, already validated by urlsplit
        return
    if any(char in _FORBIDDEN_HOST_CHARS or ord(char) < 0x20 for char in hostname):
        raise InvalidTarget(url)


def canonicalize_url(url: str) -> str:
    """
    Return the canonical form of `url`.

    Raises InvalidTarget if `url` has no scheme, if a hierarchical url
    (other than file) has no hostname, if the host holds characters
    that are not allowed, or if the url is otherwise malformed.
    """
    try:
        parts = urlsplit(url.strip())
        hostname = parts.hostname
        port = parts.port
    except ValueError as exc:
        raise InvalidTarget(url) from exc

    scheme = parts.scheme.lower()
    if not scheme:
        raise InvalidTarget(url)

    if scheme not in _HIERARCHICAL_SCHEMES:
        if hostname:
            _check_host(url, hostname)
        return urlunsplit(
            (scheme, parts.netloc, parts.path, parts.query, parts.fragment)
        )

    if hostname:
        _check_host(url, hostname)
    elif scheme != "file":
        raise InvalidTarget(url)

    netloc = hostname or ""
    if scheme == "file" and netloc == "localhost":
        netloc = ""
    if ":" in netloc:
        netloc = f"[{netloc}]"
    if port is not None and _DEFAULT_PORTS.get(scheme) != port:
        netloc = f"{netloc}:{port}"

    userinfo = parts.netloc.rpartition("@")[0]
    if userinfo:
        netloc = f"{userinfo}@{netloc}"

    path = parts.path if parts.path.startswith("/") else "/" + parts.path
    path = remove_dot_segments(path)

    return urlunsplit((scheme, netloc, path, parts.query, parts.fragment))


def strip_fragment(url: str) -> str:
    parts = urlsplit(url)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, parts.query, ""))


def equal_with_excluded_fragments(a: str, b: str) -> bool:
    """
    Compare two urls ignoring their fragments.

    Urls that cannot be canonicalized never compare equal.
    """
    try:
        return strip_fragment(canonicalize_url(a)) == strip_fragment(
            canonicalize_url(b)
        )
    except InvalidTarget:
        return False
