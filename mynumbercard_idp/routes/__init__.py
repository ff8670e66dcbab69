"""Route registrations for the identity provider."""

# Import submodules to register routes via decorators.
from . import authentication  # noqa: F401
from . import general  # noqa: F401

__all__ = ["authentication", "general"]
