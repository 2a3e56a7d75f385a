# =============================================================================
# Access Policy - Shared API Key
# =============================================================================
#
# One key, full access: any caller presenting the configured key may read
# and write every document and question. There is no per-user ownership.
#
# The policy is enforced when an api_key is configured or auth_enabled is
# set. With auth_enabled and no key, nothing can authenticate, which is the
# safe failure for a misconfigured deployment. With neither, access is
# anonymous (local development).
#
# Pure logic, no FastAPI imports: `filing_qa.api.deps` turns a rejection
# into a 401 response.
# =============================================================================

from __future__ import annotations

import secrets
from dataclasses import dataclass

from filing_qa.config import Settings


@dataclass(frozen=True)
class SharedKeyPolicy:
    api_key: str = ""
    enabled: bool = False

    @classmethod
    def from_settings(cls, settings: Settings) -> SharedKeyPolicy:
        return cls(api_key=settings.api_key, enabled=settings.auth_enabled)

    @property
    def enforced(self) -> bool:
        return self.enabled or bool(self.api_key)

    def allows(self, presented: str | None) -> bool:
        """True when the presented bearer token grants access."""
        if not self.enforced:
            return True
        if not presented or not self.api_key:
            return False
        # Constant-time comparison
        return secrets.compare_digest(presented.encode(), self.api_key.encode())
