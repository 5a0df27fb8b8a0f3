"""Slug and content fingerprint helpers for markdown sections."""

import hashlib
import re

DEFAULT_HASH_CHARS = 200
HASH_HEX_LENGTH = 16

# ASCII word characters only
_DISALLOWED_CHARS = re.compile(r"[^A-Za-z0-9_\s-]")
_WHITESPACE_RUN = re.compile(r"\s+")
_HYPHEN_RUN = re.compile(r"-+")


def slugify(text: str) -> str:
    """Convert heading text to a URL-safe slug.

    Args:
        text: Raw heading text

    Returns:
        Lowercase slug with words separated by hyphens. Input made only of
        punctuation yields an empty string.

    Examples:
        >>> slugify("Hello World")
        'hello-world'
        >>> slugify("API v2.0 Endpoints")
        'api-v20-endpoints'
        >>> slugify("---")
        ''
    """
    text = text.lower().strip()

    # Drop punctuation but keep whitespace and hyphens as word separators
    text = _DISALLOWED_CHARS.sub("", text)
    text = _WHITESPACE_RUN.sub("-", text)
    text = _HYPHEN_RUN.sub("-", text)

    return text.strip("-")


def compute_content_hash(content: str, max_chars: int = DEFAULT_HASH_CHARS) -> str:
    """Fingerprint the leading characters of a section body.

    Only the first ``max_chars`` characters take part in the hash, so two
    bodies sharing that prefix produce the same fingerprint. The SHA-256 hex
    digest is truncated to ``HASH_HEX_LENGTH`` characters.

    Args:
        content: Section body text
        max_chars: Number of leading characters to hash (default 200)

    Returns:
        16-character lowercase hex string
    """
    prefix = content[:max_chars]
    digest = hashlib.sha256(prefix.encode("utf-8")).hexdigest()
    return digest[:HASH_HEX_LENGTH]
