"""
Storyline: story lifecycle backend.

This package follows Clean Architecture principles:

- domain: pydantic entities, the status workflow, access policy and
  business rules
- repositories: Protocol ports plus memory, PostgreSQL and Redis
  implementations
- services: cache gateway and creation rate limiting on top of the cache
  port
- use_cases: the story lifecycle manager and attachment graph operations
- api: FastAPI surface wiring the use cases to HTTP
"""

__version__ = "0.1.0"
