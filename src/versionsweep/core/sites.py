"""
Site listing and filtering.

Sites come either from the tenant admin endpoint or from a local file.
Filtering is a plain predicate applied by the caller.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Iterable

import yaml


@dataclass(frozen=True)
class Site:
    """One managed site."""

    url: str
    title: str | None = None
    is_personal_site: bool = False


SiteFilter = Callable[[Site], bool]


class SiteListError(Exception):
    """Site list could not be read."""

    def __init__(self, message: str, path: Path | None = None):
        self.path = path
        super().__init__(message)


def _is_personal_url(url: str) -> bool:
    return "-my." in url.lower() or "/personal/" in url.lower()


def load_sites_file(path: Path | str) -> list[Site]:
    """Load sites from a YAML or plain text file.

    YAML files hold a list of URLs or of mappings with ``url``, ``title``
    and ``personal`` keys. Text files hold one URL per line; blank lines and
    ``#`` comments are ignored.

    Args:
        path: Path to the sites file

    Returns:
        Sites in file order

    Raises:
        SiteListError: If the file is missing or malformed
    """
    path = Path(path)
    if not path.exists():
        raise SiteListError(f"Sites file not found: {path}", path=path)

    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise SiteListError(f"Cannot read {path}: {e}", path=path) from e

    if path.suffix.lower() in (".yaml", ".yml"):
        try:
            data = yaml.safe_load(text) or []
        except yaml.YAMLError as e:
            raise SiteListError(f"Invalid YAML in {path}: {e}", path=path) from e
        if isinstance(data, dict):
            data = data.get("sites", [])
        if not isinstance(data, list):
            raise SiteListError(f"Expected a list of sites in {path}", path=path)
        return [_site_from_entry(entry, path) for entry in data]

    sites = []
    for line in text.splitlines():
        line = line.split("#", 1)[0].strip()
        if line:
            url = line.rstrip("/")
            sites.append(Site(url=url, is_personal_site=_is_personal_url(url)))
    return sites


def _site_from_entry(entry: object, path: Path) -> Site:
    if isinstance(entry, str):
        url = entry.strip().rstrip("/")
        return Site(url=url, is_personal_site=_is_personal_url(url))

    if isinstance(entry, dict) and entry.get("url"):
        url = str(entry["url"]).strip().rstrip("/")
        personal = entry.get("personal")
        return Site(
            url=url,
            title=entry.get("title"),
            is_personal_site=_is_personal_url(url) if personal is None else bool(personal),
        )

    raise SiteListError(f"Invalid site entry in {path}: {entry!r}", path=path)


def build_site_filter(
    include_personal_sites: bool = False,
    include_patterns: list[str] | None = None,
    exclude_patterns: list[str] | None = None,
) -> SiteFilter:
    """Build a site predicate from glob patterns.

    Patterns use ``fnmatch`` syntax and are matched case-insensitively
    against the full site URL.
    """
    includes = [p.lower() for p in include_patterns or []]
    excludes = [p.lower() for p in exclude_patterns or []]

    def predicate(site: Site) -> bool:
        url = site.url.lower()
        if site.is_personal_site and not include_personal_sites:
            return False
        if includes and not any(fnmatch.fnmatchcase(url, p) for p in includes):
            return False
        if any(fnmatch.fnmatchcase(url, p) for p in excludes):
            return False
        return True

    return predicate


def filter_sites(sites: Iterable[Site], predicate: SiteFilter | None = None) -> list[Site]:
    """Apply a predicate, keeping order and dropping duplicate URLs."""
    seen: set[str] = set()
    result: list[Site] = []
    for site in sites:
        key = site.url.lower()
        if key in seen:
            continue
        if predicate is not None and not predicate(site):
            continue
        seen.add(key)
        result.append(site)
    return result
