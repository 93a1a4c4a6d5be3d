"""
Grant or revoke the admin role
==============================

Role elevation never happens through the API. Operators run this against the
same DATABASE_URL as the server:

Usage:
    digilib-grant-admin reader@example.com
    digilib-grant-admin reader@example.com --revoke
    digilib-grant-admin --user-id 5f0c...  # profile id instead of email

The user must have signed in once so that a profile exists.
"""

import argparse
import asyncio
import sys
from typing import List, Optional

from digilib.core.config import settings
from digilib.core.database import create_engine, create_session_factory, init_db
from digilib.core.exceptions import DigiLibError, UserNotFoundError
from digilib.core.logging_config import logger
from digilib.models import UserRole
from digilib.services.identity_service import identity_service


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="digilib-grant-admin",
        description="Grant (or revoke) the admin role on an existing library profile",
    )
    target = parser.add_mutually_exclusive_group(required=True)
    target.add_argument("email", nargs="?", help="Email of the profile to change")
    target.add_argument("--user-id", help="Profile id instead of email")
    parser.add_argument("--revoke", action="store_true", help="Set the role back to user")
    parser.add_argument("--database-url", default=None, help="Override DATABASE_URL")
    return parser


async def set_admin_role(database_url: str, email: Optional[str] = None,
                         user_id: Optional[str] = None, revoke: bool = False) -> str:
    """Change the role and return the profile's email"""
    engine = create_engine(database_url)
    try:
        await init_db(engine)
        session_factory = create_session_factory(engine)
        async with session_factory() as db:
            if user_id is None:
                profile = await identity_service.find_profile_by_email(db, email)
                if profile is None:
                    raise UserNotFoundError(email)
                user_id = str(profile.id)
            role = UserRole.USER if revoke else UserRole.ADMIN
            profile = await identity_service.set_role(db, user_id, role)
            return profile.email
    finally:
        await engine.dispose()


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        email = asyncio.run(set_admin_role(
            args.database_url or settings.DATABASE_URL,
            email=args.email,
            user_id=args.user_id,
            revoke=args.revoke,
        ))
    except DigiLibError as e:
        logger.error(f"[GrantAdmin] {e.message}")
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(f"{email} is now {'a user' if args.revoke else 'an admin'}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
