# flownav/core/utils/url.py
"""Database URL helpers for safe logging and driver selection."""

from __future__ import annotations

from urllib.parse import urlparse, urlunparse

SUPPORTED_SCHEMES = ('sqlite', 'postgresql+psycopg')


def mask_database_url(url: str) -> str:
    """Replace the password of a database URL with '***'.

    Falls back to string splitting when the URL cannot be parsed.
    """
    try:
        parsed = urlparse(url)
        if parsed.password:
            netloc = parsed.netloc.replace(f':{parsed.password}@', ':***@')
            return urlunparse(parsed._replace(netloc=netloc))
        return url
    except ValueError:
        if '@' not in url:
            return url
        pre, post = url.split('@', 1)
        scheme_user = pre.rsplit(':', 1)[0]
        return f'{scheme_user}:***@{post}'


def to_sqlalchemy_url(url: str) -> str:
    """Pin plain PostgreSQL URLs to the psycopg (v3) driver.

    - ``postgresql://...`` -> ``postgresql+psycopg://...``
    - ``postgres://...`` -> ``postgresql+psycopg://...``

    Anything else (sqlite, explicit drivers) is returned unchanged.
    """
    scheme, sep, rest = url.partition('://')
    if not sep:
        return url
    if scheme in {'postgresql', 'postgres'}:
        return f'postgresql+psycopg://{rest}'
    return url


def is_supported_url(url: str) -> bool:
    scheme = to_sqlalchemy_url(url).split('://', 1)[0]
    return scheme in SUPPORTED_SCHEMES
