"""Content identity: titles to slugs, slugs to remote file names.

A slug is the remote file stem (``sf-trip`` for ``blog/sf-trip.md``).
The sync engine matches local and remote documents by slug; the publish
pipeline picks a fresh, collision-free slug for new posts.
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable

from ..content.models import Document
from ..errors import IdentityCollision
from .models import SlugResolution

logger = logging.getLogger(__name__)

PLACEHOLDER_SLUG = "untitled-post"
MARKDOWN_SUFFIX = ".md"

_UNSAFE = re.compile(r"[^a-z0-9-]")
# Trailing counter; an all-digit slug keeps its digits
_NUMERIC_SUFFIX = re.compile(r"(?<=\D)\d+$")


# ---------------------------------------------------------------------------
# Slugs
# ---------------------------------------------------------------------------


def base_slug(title: str) -> str:
    """Lowercase, spaces to hyphens, drop ``[^a-z0-9-]``, trim hyphens.

    May return an empty string; see ``slugify()``.
    """
    cleaned = title.lower().replace(" ", "-")
    return _UNSAFE.sub("", cleaned).strip("-")


def slugify(title: str) -> str:
    """Like ``base_slug()`` but never empty.

    >>> slugify("SF Trip!")
    'sf-trip'
    >>> slugify("???")
    'untitled-post'
    """
    return base_slug(title) or PLACEHOLDER_SLUG


def strip_numeric_suffix(slug: str) -> str:
    """``sf-trip2`` -> ``sf-trip``."""
    return _NUMERIC_SUFFIX.sub("", slug)


def unique_slug(
    base: str, existing: Iterable[str], disambiguate: bool = True
) -> SlugResolution:
    """Pick a slug that does not clash with *existing* remote slugs.

    *base* counts as taken when it equals an existing slug, or an existing
    slug with its numeric suffix stripped (``sf-trip2`` also claims
    ``sf-trip``).  A taken base gets the first free ``base2``,
    ``base3``, ... suffix.

    Args:
        base: Preferred slug, normally from ``slugify()``.
        existing: Slugs already present in the remote directory.
        disambiguate: When False, a taken base raises instead.

    Raises:
        IdentityCollision: *base* is taken and *disambiguate* is False.
    """
    taken = set(existing)
    stems = {strip_numeric_suffix(slug) for slug in taken}

    if base not in taken and base not in stems:
        return SlugResolution(slug=base, disambiguated=False)
    if not disambiguate:
        raise IdentityCollision(base)

    counter = 2
    while f"{base}{counter}" in taken:
        counter += 1
    chosen = f"{base}{counter}"
    logger.info("Slug '%s' already exists, using '%s'", base, chosen)
    return SlugResolution(slug=chosen, disambiguated=True)


# ---------------------------------------------------------------------------
# File names
# ---------------------------------------------------------------------------


def filename_for(slug: str) -> str:
    return f"{slug}{MARKDOWN_SUFFIX}"


def slug_from_filename(name: str) -> str:
    """``blog/sf-trip.md`` -> ``sf-trip``."""
    name = name.rsplit("/", 1)[-1]
    if name.lower().endswith(MARKDOWN_SUFFIX):
        return name[: -len(MARKDOWN_SUFFIX)]
    return name


# ---------------------------------------------------------------------------
# Local documents
# ---------------------------------------------------------------------------


def local_slug(document: Document) -> tuple[str, bool]:
    """Recover the remote slug a local document corresponds to.

    Recovery order: the stored remote file name, then the title slug,
    then ``unnamed-<id prefix>`` for documents whose title yields no
    usable slug.

    Returns:
        ``(slug, is_placeholder)``; the flag is True only for the
        ``unnamed-`` fallback.
    """
    if document.origin_filename:
        return slug_from_filename(document.origin_filename), False

    slug = base_slug(document.title)
    if slug:
        return slug, False

    placeholder = f"unnamed-{document.id[:8]}"
    logger.warning(
        "Document %s has no usable title or file name, tracking it as '%s'",
        document.id,
        placeholder,
    )
    return placeholder, True


def normalize_title(title: str) -> str:
    return title.strip().casefold()


def match_title(title: str, candidates: dict[str, str]) -> str | None:
    """Find the candidate whose title equals *title*.

    Comparison is case-insensitive on whitespace-trimmed titles.

    Args:
        title: Title to look up.
        candidates: ``{slug: title}`` of remote documents.

    Returns:
        The matching slug, or None.  Empty titles never match.
    """
    wanted = normalize_title(title)
    if not wanted:
        return None
    for slug, candidate in candidates.items():
        if normalize_title(candidate) == wanted:
            return slug
    return None
