"""Service layer: reads (CatallaxService) and writes (TaskActions)."""

from catallax.api.actions import TaskActions
from catallax.api.service import CatallaxService

__all__ = ["CatallaxService", "TaskActions"]
