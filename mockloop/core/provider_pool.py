"""
Provider Pool - credential bookkeeping for the provider chain.

Holds the ordered API keys of every provider and remembers which ones
failed during the current epoch. Failed keys stay disabled until
reset_epoch() is called explicitly between sessions.
"""

import logging
import threading

from mockloop.config.settings import Settings, get_settings
from mockloop.models.provider import Credential

logger = logging.getLogger(__name__)


class ProviderPool:
    """
    Ordered credential lists keyed by provider id.

    Only the router's failure path mutates a pool. The lock keeps marking
    atomic when one pool is shared by sessions served from several threads.
    """

    def __init__(self, credentials: dict[str, list[str]] | None = None):
        """
        Args:
            credentials: Mapping of provider id to its API keys, in rotation order
        """
        self._lock = threading.Lock()
        self._credentials: dict[str, list[Credential]] = {}
        self.epoch = 0

        for provider_id, secrets in (credentials or {}).items():
            self.add_provider(provider_id, secrets)

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "ProviderPool":
        """Build a pool from the configured key lists."""
        settings = settings or get_settings()
        return cls({
            "openrouter": settings.openrouter_api_keys,
            "groq": settings.groq_api_keys,
            "gemini": settings.gemini_api_keys,
        })

    def add_provider(self, provider_id: str, secrets: list[str]) -> None:
        with self._lock:
            self._credentials[provider_id] = [
                Credential(provider_id=provider_id, secret=secret, index=i)
                for i, secret in enumerate(secrets)
                if secret
            ]
        logger.info(f"Provider {provider_id}: {len(self._credentials[provider_id])} credential(s)")

    # =========================================================================
    # READ
    # =========================================================================

    def credentials(self, provider_id: str) -> list[Credential]:
        """All credentials of a provider, failed or not."""
        return list(self._credentials.get(provider_id, []))

    def viable(self, provider_id: str) -> list[Credential]:
        """Non-failed credentials of a provider, in rotation order."""
        with self._lock:
            return [c for c in self._credentials.get(provider_id, []) if not c.failed]

    def failed_credentials(self) -> list[Credential]:
        with self._lock:
            return [
                c for creds in self._credentials.values()
                for c in creds if c.failed
            ]

    @property
    def failed_count(self) -> int:
        return len(self.failed_credentials())

    def is_exhausted(self, provider_ids: list[str]) -> bool:
        """True when none of the given providers has a viable credential."""
        return all(not self.viable(pid) for pid in provider_ids)

    # =========================================================================
    # MUTATE
    # =========================================================================

    def mark_failed(self, credential: Credential) -> bool:
        """
        Disable a credential for the rest of the epoch.

        Returns:
            True if this call changed the credential's state
        """
        with self._lock:
            if credential.failed:
                return False
            credential.failed = True

        remaining = len(self.viable(credential.provider_id))
        logger.warning(
            f"Credential {credential.label} marked failed "
            f"(epoch {self.epoch}, {remaining} left for {credential.provider_id})"
        )
        return True

    def reset_epoch(self) -> int:
        """Re-enable every credential and start a new epoch."""
        with self._lock:
            for creds in self._credentials.values():
                for credential in creds:
                    credential.failed = False
            self.epoch += 1
            epoch = self.epoch

        logger.info(f"Provider pool reset, epoch {epoch}")
        return epoch
