from __future__ import annotations

from photoforge_workflow.api.client import PhotoForgeApi
from photoforge_workflow.core.credentials import AccessCredentialStore
from photoforge_workflow.core.result import OperationResult
from photoforge_workflow.core.run_logger import RunLogger, mask_secret
from photoforge_workflow.util.errors import AuthError, PhotoForgeError, ValidationError


async def sign_in(
    store: AccessCredentialStore,
    api: PhotoForgeApi,
    access_key: str,
    logger: RunLogger | None = None,
) -> OperationResult[str]:
    """Validate an access key with the backend and persist it on success."""
    key = (access_key or "").strip()
    if not key:
        raise ValidationError("Please enter your access key.")
    if logger:
        logger.log(f"Validating access key {mask_secret(key)}.")
    try:
        is_valid, message = await api.validate_key(key)
    except PhotoForgeError as e:
        return OperationResult.failure(e)
    if not is_valid:
        return OperationResult.failure(AuthError(message or "Invalid access key"))
    store.set(key)
    if logger:
        logger.log("Access key accepted and saved.")
    return OperationResult.success(key, message or "Access key is valid.")


def sign_out(store: AccessCredentialStore, logger: RunLogger | None = None) -> None:
    store.clear()
    if logger:
        logger.log("Access key cleared.")
