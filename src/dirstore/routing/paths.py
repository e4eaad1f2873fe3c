"""Path helpers shared by every classifier branch.

A route path is the request path without its leading slash, e.g. ``b/k1/k2``.
All helpers here are pure string functions.
"""


def split_segments(path: str) -> list[str]:
    """Split a raw request path on ``/``, dropping trailing empty elements.

    Paths start with ``/`` so the first element is always empty: ``/b`` gives
    2 elements, ``/b/k`` gives 3 and ``/`` gives none. ``/b/`` still counts
    as a bucket path.
    """
    elts = path.split("/")
    while elts and elts[-1] == "":
        elts.pop()
    return elts


def resolve_uri(
    path: str,
    key: str | None = None,
    format: str | None = None,
    uri: str | None = None,
) -> str | None:
    """Compute the object uri for a route path.

    Args:
        path: The route path (or any path prefix to extend).
        key: Explicit key appended as ``path/key``.
        format: Explicit format suffix appended as ``path.format``; wins over key.
        uri: The caller's current uri, returned unchanged when neither key
            nor format is given.

    Returns:
        The resolved uri.
    """
    if format:
        return f"{path}.{format}"
    if key:
        return f"{path}/{key}"
    return uri


def bucket_of(path: str) -> str:
    """Return the first segment of a route path or uri."""
    return path.lstrip("/").split("/")[0]


def key_of(uri: str) -> str:
    """Return the uri with its first segment removed."""
    return "/".join(uri.lstrip("/").split("/")[1:])
