"""
Authentication Constants

Signing secrets, token lifetimes and password-hashing cost.
Access and refresh tokens are signed with independent secrets.
"""

import logging

from decouple import config

logger = logging.getLogger(__name__)

# JWT Configuration
SECRET_KEY = config("SECRET_KEY", default="your_secret_key")
if SECRET_KEY == "your_secret_key":
    logger.warning("Using default SECRET_KEY. This is insecure and should be changed in production!")

REFRESH_SECRET_KEY = config("REFRESH_SECRET_KEY", default="your_refresh_secret_key")
if REFRESH_SECRET_KEY == "your_refresh_secret_key":
    logger.warning("Using default REFRESH_SECRET_KEY. This is insecure and should be changed in production!")
if REFRESH_SECRET_KEY == SECRET_KEY:
    logger.warning("REFRESH_SECRET_KEY equals SECRET_KEY; refresh and access tokens are no longer independent")

ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = config("ACCESS_TOKEN_EXPIRE_MINUTES", default=15, cast=int)
REFRESH_TOKEN_EXPIRE_DAYS = config("REFRESH_TOKEN_EXPIRE_DAYS", default=7, cast=int)

# bcrypt work factor
BCRYPT_ROUNDS = config("BCRYPT_ROUNDS", default=12, cast=int)

logger.info(f"ACCESS_TOKEN_EXPIRE_MINUTES: {ACCESS_TOKEN_EXPIRE_MINUTES}")
