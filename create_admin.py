# create_admin.py
import asyncio
from getpass import getpass

from equiploan.db.database import init_db
from equiploan.models.enum import UserRole
from equiploan.models.user import User
from equiploan.core.security import get_password_hash


def prompt_required(label: str) -> str:
    while True:
        value = input(label).strip()
        if value:
            return value
        print("Value cannot be empty.")


def prompt_password() -> str:
    while True:
        password = getpass("Enter admin password: ")
        if not password:
            print("Password cannot be empty.")
            continue
        if len(password) < 6:
            print("Password must be at least 6 characters.")
            continue
        if password == getpass("Confirm admin password: "):
            return password
        print("Passwords do not match. Please try again.")


async def create_initial_admin():
    """Create the first admin account so the API can be used at all."""
    print("--- Create Initial Admin User ---")
    client = await init_db()
    try:
        username = prompt_required("Enter admin username: ")
        if await User.find_one(User.username == username):
            print(f"Error: Username '{username}' already exists.")
            return

        password = prompt_password()
        email = input("Enter admin email (optional, press Enter to skip): ").strip() or None
        full_name = input("Enter admin full name (optional, press Enter to skip): ").strip() or None

        admin_user = User(
            username=username,
            email=email,
            full_name=full_name,
            hashed_password=get_password_hash(password),
            role=UserRole.ADMIN,
            disabled=False,
        )
        await admin_user.insert()
        print(f"Admin user '{username}' created successfully!")
    finally:
        client.close()
        print("Database connection closed.")


if __name__ == "__main__":
    asyncio.run(create_initial_admin())
