"""Idea Flow: business idea generation and normalization pipeline."""

from .config import get_settings
from .errors import GenerationFailure
from .pipeline import BusinessIdeaPipeline, generate_business_idea
from .schemas import BusinessIdea, UserPreferences

__all__ = [
    "BusinessIdea",
    "BusinessIdeaPipeline",
    "GenerationFailure",
    "UserPreferences",
    "generate_business_idea",
    "get_settings",
]
