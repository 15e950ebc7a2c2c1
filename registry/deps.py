"""Shared engine services for request handlers.

One lifecycle instance serves every request so per-component write locks
are shared.
"""

from __future__ import annotations

from changelog.lifecycle import VersionLifecycle
from changelog.release import LibraryReleases
from registry.database import async_session
from registry.store import SqlVersionStore

_store = SqlVersionStore(async_session)
_lifecycle = VersionLifecycle(_store)
_releases = LibraryReleases(_store)


def get_lifecycle() -> VersionLifecycle:
    return _lifecycle


def get_releases() -> LibraryReleases:
    return _releases
