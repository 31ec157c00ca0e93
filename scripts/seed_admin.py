#!/usr/bin/env python3
"""
Seed Super Admin Script
Bootstraps the first super admin for a fresh installation
"""

import argparse
import asyncio
import sys
from datetime import timedelta

from sqlalchemy import select

from docgov.core.security import create_access_token
from docgov.db.models import GlobalRoleName, Principal
from docgov.db.session import close_db, init_db
from docgov.services.tenancy import TenancyService


async def seed_super_admin(email: str, full_name: str, print_token: bool) -> int:
    """Promote (or create) the principal with ``email`` to super admin"""
    await init_db(create_tables=True)

    # Import async_session_maker after init_db
    from docgov.db.session import async_session_maker

    try:
        async with async_session_maker() as session:
            service = TenancyService(session)
            email = email.strip().lower()

            result = await session.execute(select(Principal).where(Principal.email == email))
            principal = result.scalar_one_or_none()

            if principal is None:
                if await service.has_super_admin():
                    print("A super admin already exists; use the API to add more")
                    return 1
                principal = await service.create_principal(
                    email,
                    full_name,
                    None,
                    role=GlobalRoleName.SUPER_ADMIN.value,
                )
                print(f"Created super admin: {email}")
            else:
                await service.set_global_role(principal.id, GlobalRoleName.SUPER_ADMIN.value, None)
                print(f"Promoted existing principal to super admin: {email}")

            print(f"Principal ID: {principal.id}")
            if print_token:
                token = create_access_token({"sub": str(principal.id)}, expires_delta=timedelta(hours=1))
                print(f"Access token (1h): {token}")
            return 0
    finally:
        await close_db()


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("email", help="Email of the super admin")
    parser.add_argument("--full-name", default="Platform Administrator")
    parser.add_argument("--print-token", action="store_true", help="Print a short-lived access token")
    args = parser.parse_args()
    return asyncio.run(seed_super_admin(args.email, args.full_name, args.print_token))


if __name__ == "__main__":
    sys.exit(main())
