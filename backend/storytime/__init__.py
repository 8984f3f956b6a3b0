"""StoryTime accounts backend.

Registration, email verification, login, password recovery and the
per-user story library.
"""

__version__ = "0.1.0"

__all__ = [
    "__version__",
]
