# backend/sparfinder/repositories/user_repository.py
"""
User Repository.

Read access to users and their public profiles, used to decorate
conversation summaries, message projections and notification titles.
"""

from typing import Optional, cast

from sqlalchemy.orm import Session

from ..models.user import Profile, User
from .base_repository import BaseRepository


class UserRepository(BaseRepository[User]):
    """Repository for user and profile lookups."""

    def __init__(self, db: Session):
        super().__init__(db, User)

    def get_profile(self, user_id: int) -> Optional[Profile]:
        return cast(
            Optional[Profile],
            self.db.query(Profile).filter(Profile.user_id == user_id).first(),
        )

    def create_with_profile(
        self,
        email: str,
        *,
        first_name: str = "",
        last_name: str = "",
        photo_url: Optional[str] = None,
    ) -> User:
        """Create a user and its profile (seeding and tests)."""
        user = self.create(email=email)
        self.db.add(
            Profile(
                user_id=user.id, first_name=first_name, last_name=last_name, photo_url=photo_url
            )
        )
        self.db.flush()
        self.db.refresh(user)
        return user
