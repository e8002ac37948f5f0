from __future__ import annotations

from app.services.brainstorm import BrainstormService
from app.services.images import ImageService

from ..services_container import get_brainstorm_service_instance, get_image_service_instance


def get_image_service() -> ImageService:
    return get_image_service_instance()


def get_brainstorm_service() -> BrainstormService:
    return get_brainstorm_service_instance()
