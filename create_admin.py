"""Bootstrap the first admin account.

    python create_admin.py --email admin@capersports.com --password '...'

Admins can promote other users afterwards through /api/admin/users/{id}/role.
"""
import argparse
import logging
import sys
from typing import Optional

import config
from database import db, now
from schemas import User
from security import hash_password

logger = logging.getLogger(__name__)


def create_admin(email: str, password: str, first_name: str = "Admin", last_name: str = "User") -> Optional[str]:
    """Insert an admin, or promote the existing account with that email.

    Returns the user id, or None when the account was already an admin.
    """
    email = email.lower()
    existing = db["user"].find_one({"email": email})
    if existing:
        if existing.get("role") == "admin":
            logger.info("%s is already an admin", email)
            return None
        db["user"].update_one({"_id": existing["_id"]}, {"$set": {"role": "admin", "is_active": True, "updated_at": now()}})
        logger.info("Promoted %s to admin", email)
        return str(existing["_id"])
    user = User(
        first_name=first_name,
        last_name=last_name,
        email=email,
        password_hash=hash_password(password),
        role="admin",
        is_email_verified=True,
    )
    result = db["user"].insert_one({**user.model_dump(), "created_at": now(), "updated_at": now()})
    logger.info("Created admin %s", email)
    return str(result.inserted_id)


def main(argv=None):
    parser = argparse.ArgumentParser(description="Create a Caper Sports admin account")
    parser.add_argument("--email", required=True)
    parser.add_argument("--password", required=True)
    parser.add_argument("--first-name", default="Admin")
    parser.add_argument("--last-name", default="User")
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL, format="%(levelname)s %(message)s")
    if db is None:
        logger.error("No database configured, set DATABASE_URL or AZURE_COSMOS_CONNECTION_STRING")
        return 1
    if len(args.password) < 6:
        logger.error("Password must be at least 6 characters")
        return 1
    create_admin(args.email, args.password, args.first_name, args.last_name)
    return 0


if __name__ == "__main__":
    sys.exit(main())
