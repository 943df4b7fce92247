from typing import Union  # noqa:F401


def asbool(value):
    # type: (Union[str, bool, None]) -> bool
    """Convert the given String to a boolean object.

    Accepted values are `True` and `1`.
    """
    if value is None:
        return False

    if isinstance(value, bool):
        return value

    return value.lower() in ("true", "1")


def ensure_text(value, encoding="utf-8", errors="backslashreplace"):
    # type: (Union[str, bytes], str, str) -> str
    if isinstance(value, bytes):
        return value.decode(encoding, errors=errors)
    return value
