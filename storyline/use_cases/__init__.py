"""
Use cases for storyline.

Framework-agnostic orchestration of the story lifecycle. Collaborators are
injected through constructors and validated against their Protocols.
"""

from .attachment_graph import StoryAttachmentUseCase
from .context import StoryContext
from .story_lifecycle import StoryLifecycleUseCase

__all__ = [
    "StoryAttachmentUseCase",
    "StoryContext",
    "StoryLifecycleUseCase",
]
