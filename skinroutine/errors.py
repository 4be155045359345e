"""
Error types and the predicate guard.

The routine pipeline reports user-facing problems as advisory notes, not exceptions.
Exceptions here are raised only at the collaborator boundary (catalog loading, profile
normalization). `guarded` wraps classification predicates so one malformed product can
never abort a whole request.
"""

import functools
import logging

logger = logging.getLogger(__name__)


class SkinRoutineError(Exception):
    """Base error for the package."""


class CatalogError(SkinRoutineError):
    """The product catalog could not be read or parsed."""


class ProfileError(SkinRoutineError):
    """A raw quiz payload could not be turned into a Profile."""


def guarded(default: bool):
    """Return `default` if the wrapped predicate raises.

    Safety predicates use the fail-closed value, cosmetic ones the fail-open value.
    """

    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except Exception as e:
                logger.warning(f"{func.__name__} failed, treating as {default}: {e}")
                return default

        return wrapper

    return decorator
