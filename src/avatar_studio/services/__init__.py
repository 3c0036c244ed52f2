# Services package (generation lifecycle)

from src.avatar_studio.services.avatar_library import AvatarLibrary, AvatarNotFoundError
from src.avatar_studio.services.generation_instance import (
    GenerationInstance,
    GenerationStateError,
)
from src.avatar_studio.services.generation_manager import (
    GenerationManager,
    GenerationNotFoundError,
)

__all__ = [
    "AvatarLibrary",
    "AvatarNotFoundError",
    "GenerationInstance",
    "GenerationManager",
    "GenerationNotFoundError",
    "GenerationStateError",
]
