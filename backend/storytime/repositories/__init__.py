"""Data-access layer over the users table."""

from storytime.repositories.user_repository import UserRepository

__all__ = ["UserRepository"]
