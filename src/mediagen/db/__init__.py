"""Database models and utilities."""

from .db_models import Base, GenerationJobModel, MediaDescriptorModel, ModelRouteModel

__all__ = [
    "Base",
    "GenerationJobModel",
    "MediaDescriptorModel",
    "ModelRouteModel",
]
