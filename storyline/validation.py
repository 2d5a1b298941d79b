"""
Runtime checks for collaborators injected into the use cases.

Repository ports are ``@runtime_checkable`` Protocols, so ``isinstance()``
confirms that an adapter exposes every method of its port. Use cases call
``ensure_repository_protocol`` in their constructors to catch wiring
mistakes when the application starts rather than on the first request.
"""

import logging
from typing import Type, TypeVar

logger = logging.getLogger(__name__)

P = TypeVar("P")


class RepositoryValidationError(Exception):
    """Raised when an adapter does not satisfy its port"""

    pass


def validate_repository_protocol(
    repository: object, protocol: Type[P]
) -> None:
    """
    Validate that an adapter satisfies a repository protocol.

    Args:
        repository: The adapter instance to validate
        protocol: The ``@runtime_checkable`` protocol to validate against

    Raises:
        RepositoryValidationError: If the adapter is missing methods

    Example:
        >>> from storyline.repositories.memory import MemoryStoryRepository
        >>> from storyline.repositories import StoryRepository
        >>> validate_repository_protocol(
        ...     MemoryStoryRepository(), StoryRepository
        ... )
    """
    log_extra = {
        "repository_type": type(repository).__name__,
        "protocol_name": protocol.__name__,
    }
    logger.debug("Validating repository protocol", extra=log_extra)

    if not isinstance(repository, protocol):
        logger.error(
            "Repository protocol validation failed", extra=log_extra
        )
        raise RepositoryValidationError(
            f"Repository {type(repository).__name__} does not implement "
            f"{protocol.__name__} protocol. Missing or incorrect methods."
        )


def ensure_repository_protocol(repository: object, protocol: Type[P]) -> P:
    """
    Validate and return an adapter typed as its protocol.

    Raises:
        RepositoryValidationError: If validation fails
    """
    validate_repository_protocol(repository, protocol)
    return repository  # type: ignore[return-value]
