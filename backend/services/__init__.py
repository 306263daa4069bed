"""Services package."""

from .profile import (
    ProfileLookupError,
    ProfileNotFound,
    ProfileProvider,
    ProfileService,
    headshot_rate,
)

__all__ = [
    "ProfileLookupError",
    "ProfileNotFound",
    "ProfileProvider",
    "ProfileService",
    "headshot_rate",
]
