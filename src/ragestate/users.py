"""
User display information.

A user's public name and photo are spread over two documents, the social
profile and the customer record. ``get_display_info`` merges them with a
fixed fallback order and never fails: a lookup error yields "Anonymous".
"""

import asyncio
import logging
from typing import Protocol

from pydantic import BaseModel

logger = logging.getLogger(__name__)

ANONYMOUS = "Anonymous"


class Profile(BaseModel):
    display_name: str | None = None
    photo_url: str | None = None
    profile_picture: str | None = None
    username_lower: str | None = None


class Customer(BaseModel):
    display_name: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    profile_picture: str | None = None
    username: str | None = None


class UserInfo(BaseModel):
    user_id: str
    display_name: str = ANONYMOUS
    photo_url: str | None = None
    username: str | None = None


class UserDirectory(Protocol):
    """Source of profile and customer documents."""

    async def get_profile(self, user_id: str) -> Profile | None: ...

    async def get_customer(self, user_id: str) -> Customer | None: ...


class InMemoryUserDirectory:
    def __init__(self) -> None:
        self._profiles: dict[str, Profile] = {}
        self._customers: dict[str, Customer] = {}

    def add_profile(self, user_id: str, profile: Profile) -> None:
        self._profiles[user_id] = profile

    def add_customer(self, user_id: str, customer: Customer) -> None:
        self._customers[user_id] = customer

    async def get_profile(self, user_id: str) -> Profile | None:
        return self._profiles.get(user_id)

    async def get_customer(self, user_id: str) -> Customer | None:
        return self._customers.get(user_id)


def merge_display_info(
    user_id: str,
    profile: Profile | None,
    customer: Customer | None,
) -> UserInfo:
    """
    Combine profile and customer fields.

    Name: profile display name, customer display name, "first last",
    then "Anonymous". Photo: profile photo, profile picture, customer
    picture, then None.
    """
    profile = profile or Profile()
    customer = customer or Customer()
    full_name = f"{customer.first_name or ''} {customer.last_name or ''}".strip()
    return UserInfo(
        user_id=user_id,
        display_name=profile.display_name or customer.display_name or full_name or ANONYMOUS,
        photo_url=profile.photo_url or profile.profile_picture or customer.profile_picture,
        username=profile.username_lower or customer.username,
    )


async def get_display_info(directory: UserDirectory, user_id: str) -> UserInfo:
    """Fetch both documents concurrently and merge them."""
    try:
        profile, customer = await asyncio.gather(
            directory.get_profile(user_id),
            directory.get_customer(user_id),
        )
    except Exception as e:
        logger.warning(
            "Display info lookup failed for %s: %s",
            user_id,
            e,
            extra={"user_id": user_id, "error": str(e)},
        )
        return UserInfo(user_id=user_id)
    return merge_display_info(user_id, profile, customer)


__all__ = [
    "ANONYMOUS",
    "Profile",
    "Customer",
    "UserInfo",
    "UserDirectory",
    "InMemoryUserDirectory",
    "merge_display_info",
    "get_display_info",
]
