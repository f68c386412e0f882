from ats.models.user import User
from ats.models.refresh_token import RefreshToken
from ats.models.resume import Resume

__all__ = [
    "User",
    "RefreshToken",
    "Resume",
]
