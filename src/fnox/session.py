"""
Long-lived resolution state for interactive use.

A session keeps one loaded config and re-resolves the active profile on
demand. Every refresh is tagged with an increasing resolution id; a
result that finishes after a newer refresh has started is dropped, so a
slow earlier resolution never overwrites fresher values.
"""

import logging
from typing import Optional

from fnox.config.models import Config
from fnox.secret_resolver import resolve_secrets_batch
from fnox.settings import Settings

logger = logging.getLogger(__name__)


class ResolutionSession:
    def __init__(self, config: Config, profile: str, settings: Optional[Settings] = None):
        self.config = config
        self.profile = profile
        self.settings = settings or Settings.load()
        self.values: dict[str, Optional[str]] = {}
        self.error: Optional[Exception] = None
        self.loading = False
        self._resolution_id = 0

    @property
    def resolution_id(self) -> int:
        return self._resolution_id

    def begin(self) -> int:
        """Start a new resolution and return its id."""
        self._resolution_id += 1
        self.loading = True
        return self._resolution_id

    def apply(
        self,
        resolution_id: int,
        values: Optional[dict[str, Optional[str]]] = None,
        error: Optional[Exception] = None,
    ) -> bool:
        """Store a finished resolution unless a newer one has begun."""
        if resolution_id != self._resolution_id:
            logger.debug(
                f"Discarding stale resolution {resolution_id} (current is {self._resolution_id})"
            )
            return False
        self.loading = False
        self.error = error
        if error is None:
            self.values = dict(values or {})
        return True

    async def refresh(self) -> bool:
        """Resolve every secret of the active profile.

        Returns whether the result was applied.
        """
        resolution_id = self.begin()
        profile = self.profile
        secrets = self.config.get_secrets(profile)
        try:
            values = await resolve_secrets_batch(self.config, profile, secrets, self.settings)
        except Exception as e:
            logger.debug(f"Resolution {resolution_id} for profile '{profile}' failed: {e}")
            return self.apply(resolution_id, error=e)
        return self.apply(resolution_id, values=values)

    async def switch_profile(self, profile: str) -> bool:
        self.profile = profile
        return await self.refresh()
