"""URL-safe slug and handle generation utilities."""

import re
import unicodedata

from fannax.utils.constants import USERNAME_MAX_LENGTH


def slugify(text: str) -> str:
    """Convert text to a URL-safe slug (lowercase, hyphens, no special chars).

    Args:
        text: Text to slugify (e.g. "John Doe").

    Returns:
        Slugified text (e.g. "john-doe").
    """
    text = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    text = text.lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def handle_from_name(name: str, max_length: int = USERNAME_MAX_LENGTH) -> str:
    """Build a username-style handle from a display name.

    Handles are the slug with separators removed, truncated to fit a username.

    Args:
        name: Display name (e.g. "Borussia Mönchengladbach").
        max_length: Maximum handle length.

    Returns:
        Handle (e.g. "borussiamonchengladb"), or "" if nothing usable remains.
    """
    return slugify(name).replace("-", "")[:max_length]


def with_numeric_suffix(handle: str, counter: int, max_length: int = USERNAME_MAX_LENGTH) -> str:
    """Append a de-duplication counter, trimming the base so the result still fits.

    Args:
        handle: Base handle (e.g. "arsenal").
        counter: Suffix number (e.g. 2).
        max_length: Maximum handle length.

    Returns:
        Suffixed handle (e.g. "arsenal2").
    """
    suffix = str(counter)
    return f"{handle[:max_length - len(suffix)]}{suffix}"
