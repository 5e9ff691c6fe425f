# backend/sparfinder/api/dependencies/auth.py
"""
Authentication dependencies.

Every REST route depends on ``get_current_user_id``; an absent or invalid
token is rejected with 401 before the route body runs.
"""

from fastapi import Depends

from ...auth import get_current_user_id as auth_get_current_user_id


async def get_current_user_id(user_id: int = Depends(auth_get_current_user_id)) -> int:
    return user_id
