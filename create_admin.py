#!/usr/bin/env python3
"""
Script to create staff accounts for the Titipin backend.
Public registration only offers customer, deliverer and merchant roles.
Usage: python create_admin.py [ROLE]
"""

import sys
import os
import getpass

# Add the backend directory to the Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

from database.connection import SessionLocal, create_tables
from services.auth import create_user, get_user_by_email
from models.user import UserRole, ADMIN_ROLES
from core.exceptions import ConflictError

def create_admin_user(role: UserRole = UserRole.ADMIN):
    """Create a staff user interactively"""
    print(f"Titipin {role.value} account creation")
    print("=" * 40)

    db = SessionLocal()

    try:
        # Ensure tables exist
        create_tables()

        email = input("Email: ").strip()

        existing_user = get_user_by_email(db, email)
        if existing_user:
            print(f"User with email {email} already exists with role {existing_user.role.value}")
            return

        password = getpass.getpass("Password: ").strip()
        if len(password) < 8:
            print("Password must be at least 8 characters long!")
            return

        full_name = input("Full Name: ").strip()
        phone = input("Phone (optional): ").strip() or None

        user = create_user(
            db=db,
            email=email,
            password=password,
            full_name=full_name,
            role=role,
            phone=phone
        )

        print(f"{role.value} user created successfully!")
        print(f"Email: {user.email}")
        print(f"Name: {user.full_name}")
        print(f"ID: {user.id}")

    except ConflictError as e:
        print(f"Could not create user: {e.message}")
    finally:
        db.close()

if __name__ == "__main__":
    role = UserRole.ADMIN
    if len(sys.argv) > 1:
        role = UserRole(sys.argv[1].upper())
        if role not in ADMIN_ROLES:
            print(f"{role.value} is not a staff role; use the register endpoint instead")
            sys.exit(1)
    create_admin_user(role)
