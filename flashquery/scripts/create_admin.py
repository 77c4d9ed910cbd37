# flashquery/scripts/create_admin.py
"""
Create the first admin account from the ``ADMIN_*`` settings.

Run with ``python -m flashquery.scripts.create_admin``.
"""
import asyncio

from flashquery.core.config import settings
from flashquery.db.repositories.users import UserRepository
from flashquery.db.session import close_database_connections, get_repository_context, initialize_database


async def create_admin_user():
    """Create an admin user if none exists."""
    await initialize_database()

    try:
        async with get_repository_context(UserRepository) as user_repo:
            admin = await user_repo.get_by_email(settings.ADMIN_EMAIL)

            if admin:
                print(f"Admin user already exists (id: {admin.id})")
                return

            admin = await user_repo.create_user(
                email=settings.ADMIN_EMAIL,
                password=settings.ADMIN_PASSWORD,
                name=settings.ADMIN_NAME,
                role="admin",
                is_active=True,
            )

        print(f"Admin user created with ID: {admin.id}")
        print(f"Email: {settings.ADMIN_EMAIL}")
        print("Change the password after the first login.")
    finally:
        await close_database_connections()


if __name__ == "__main__":
    asyncio.run(create_admin_user())
