# =============================================================================
# API Dependencies - Auth, Object Store, LLM
# =============================================================================
#
# FastAPI dependencies shared by the routers:
#
# 1. require_api_key()  - enforce the SharedKeyPolicy on every /api route
# 2. get_store()        - the configured ObjectStore
# 3. get_llm()          - the configured LLMProvider
#
# Tests swap any of these through app.dependency_overrides.
#
# HTTPBearer(auto_error=False) so that a missing header is not an error
# while the policy is not enforced; the dependency decides.
# =============================================================================

from __future__ import annotations

import logging

from fastapi import Depends, HTTPException
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from filing_qa.config import Settings, get_settings
from filing_qa.errors import ConfigurationError
from filing_qa.services.auth import SharedKeyPolicy
from filing_qa.services.llm import LLMProvider, get_llm_provider
from filing_qa.services.storage import ObjectStore, get_object_store

logger = logging.getLogger(__name__)

# Security scheme for OpenAPI docs (shows "Authorize" button in Swagger UI)
_bearer_scheme = HTTPBearer(auto_error=False)


def get_access_policy(
    settings: Settings = Depends(get_settings),
) -> SharedKeyPolicy:
    return SharedKeyPolicy.from_settings(settings)


async def require_api_key(
    credentials: HTTPAuthorizationCredentials | None = Depends(_bearer_scheme),
    policy: SharedKeyPolicy = Depends(get_access_policy),
) -> None:
    """
    Reject the request unless the policy allows it.

    Raises:
        HTTPException 401: missing or wrong API key.
    """
    presented = credentials.credentials if credentials else None
    if policy.allows(presented):
        return

    logger.info("Rejected request: %s API key", "invalid" if presented else "missing")
    raise HTTPException(
        status_code=401,
        detail=(
            "Invalid API key." if presented
            else "Missing API key. Provide 'Authorization: Bearer <key>' header."
        ),
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_store() -> ObjectStore:
    return get_object_store()


def get_llm() -> LLMProvider:
    """The configured LLM provider; 503 when it has no credentials."""
    try:
        return get_llm_provider()
    except ValueError as e:
        logger.error("Configuration error: %s", e)
        raise ConfigurationError(f"LLM service is not configured: {e}") from e
