from __future__ import annotations

from photoforge_workflow.api.client import PhotoForgeApi
from photoforge_workflow.core.models import GalleryImage
from photoforge_workflow.core.registry import Registry
from photoforge_workflow.core.result import OperationResult, capture
from photoforge_workflow.util.errors import PhotoForgeError, ValidationError


class Gallery:
    """Generated images for the signed-in user."""

    def __init__(self, api: PhotoForgeApi) -> None:
        self.api = api
        self.images: Registry[GalleryImage] = Registry()

    async def refresh(self) -> OperationResult[list[GalleryImage]]:
        result = await capture(self.api.list_gallery())
        if result.ok and result.value is not None:
            self.images.replace_all(result.value)
        return result

    async def generate(self, prompt: str, negative_prompt: str = "") -> OperationResult[str]:
        if not (prompt or "").strip():
            raise ValidationError("Please enter a prompt.")
        return await capture(
            self.api.generate_image(prompt.strip(), (negative_prompt or "").strip()),
            "Image generated.",
        )

    async def delete(self, image_id: str) -> OperationResult[GalleryImage]:
        if image_id not in self.images:
            raise KeyError(image_id)
        try:
            removed = await self.images.delete(image_id, self.api.delete_gallery_image)
        except PhotoForgeError as e:
            return OperationResult.failure(e)
        return OperationResult.success(removed)
