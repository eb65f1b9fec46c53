"""Account API: user signup, login and bearer-token protected profile.

This FastAPI application orchestrates:
- Account signup (POST /auth/signup)
- Login (POST /auth/login)
- Profile lookup (GET /me)
"""

from account_api.main import create_app

__all__ = ["create_app"]
