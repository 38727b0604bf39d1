"""
scripts/create_admin.py

Run this once from your project root to create the first admin user:

    python -m scripts.create_admin

You will be prompted for name, email, phone, password and role.
Admins can moderate every listing, post and membership; editors write posts.
"""

import sys
import os

# Make sure marketplace is importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from marketplace.core.config import settings
from marketplace.core.database import Database
from marketplace.core.errors import AppError
from marketplace.models.user import UserRole
from marketplace.repositories.users import UserRepository
from marketplace.utils.auth import get_password_hash

STAFF_ROLES = {"admin": UserRole.ADMIN, "editor": UserRole.EDITOR}


def create_admin():
    print("\n── Create Staff User ─────────────────────")

    full_name    = input("Full name:      ").strip()
    email        = input("Email:          ").strip()
    phone_number = input("Phone:          ").strip() or None
    password     = input("Password:       ").strip()
    role_name    = (input("Role [admin]:   ").strip() or "admin").lower()

    if not all([full_name, email, password]):
        print("❌ Name, email and password are required.")
        sys.exit(1)

    if len(password) < 8:
        print("❌ Password must be at least 8 characters.")
        sys.exit(1)

    if role_name not in STAFF_ROLES:
        print(f"❌ Role must be one of: {', '.join(STAFF_ROLES)}.")
        sys.exit(1)

    database = Database(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)
    database.create_all()
    db = database.session()
    try:
        user = UserRepository(db).create(
            email=email,
            password_hash=get_password_hash(password),
            full_name=full_name,
            phone_number=phone_number,
            role=STAFF_ROLES[role_name],
            is_verified=True,
        )

        print(f"\n✅ {role_name.capitalize()} user created successfully!")
        print(f"   ID:    {user.id}")
        print(f"   Name:  {user.full_name}")
        print(f"   Email: {user.email}")
        print(f"   Role:  {user.role.value}")
        print(f"\nYou can now log in at POST /api/auth/login.\n")

    except AppError as e:
        print(f"❌ Failed: {e.message}")
        sys.exit(1)
    finally:
        db.close()
        database.dispose()


if __name__ == "__main__":
    create_admin()
