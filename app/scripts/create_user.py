"""
Create a user (e.g. the first admin). Run from project root:
  python -m app.scripts.create_user EMAIL PASSWORD [role] [--name NAME]
Example:
  python -m app.scripts.create_user admin@example.com your-secure-password ADMIN --name "Admin User"
"""
import argparse
import logging
import sys

from app.core.config import get_settings
from app.core.database import SessionLocal
from app.core.security import (
    EMAIL_MAX_LEN,
    BCRYPT_MAX_BYTES,
    PASSWORD_MAX_LEN,
    PASSWORD_MIN_LEN,
    ROLE_ADMIN,
    ROLE_USER,
    exceeds_bcrypt_limit,
    hash_password,
)
from app.services.user_store import EmailAlreadyRegisteredError, UserStore

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%SZ",
)
logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a storefront account.")
    parser.add_argument("email", help=f"Email (at most {EMAIL_MAX_LEN} chars)")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("role", nargs="?", default=ROLE_USER, choices=[ROLE_USER, ROLE_ADMIN])
    parser.add_argument("--name", default=None, help="Display name")
    args = parser.parse_args(argv)

    email = args.email.strip()
    if not email or "@" not in email or len(email) > EMAIL_MAX_LEN:
        logger.error("Invalid email address.")
        return 1
    if not (PASSWORD_MIN_LEN <= len(args.password) <= PASSWORD_MAX_LEN):
        logger.error("Password must be %s-%s characters.", PASSWORD_MIN_LEN, PASSWORD_MAX_LEN)
        return 1
    if exceeds_bcrypt_limit(args.password):
        logger.error("Password must be at most %s bytes.", BCRYPT_MAX_BYTES)
        return 1

    settings = get_settings()
    db = SessionLocal()
    try:
        store = UserStore(db)
        if store.find_by_email(email) is not None:
            logger.error("User '%s' already exists.", email)
            return 1
        try:
            user = store.create(
                email=email,
                password_hash=hash_password(args.password, rounds=settings.BCRYPT_ROUNDS),
                name=args.name,
                role=args.role,
            )
        except EmailAlreadyRegisteredError:
            logger.error("User '%s' already exists.", email)
            return 1
        logger.info("Created user '%s' with role '%s'.", user.email, user.role)
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
