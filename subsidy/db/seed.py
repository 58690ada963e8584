"""Database seeding for local development.

Creates one user per role. Idempotent: existing users (by email) are kept.
"""

import uuid
from typing import Dict

from sqlalchemy.orm import Session

from subsidy.core.roles import Role
from subsidy.db.models import User

DEMO_USERS = {
    Role.VALIDATOR: {"email": "validator@subsidy.local", "name": "Document Validator"},
    Role.DIRECTOR: {"email": "director@subsidy.local", "name": "Program Director"},
    Role.DISBURSER: {"email": "disburser@subsidy.local", "name": "Disbursing Officer"},
    Role.CLOSER: {"email": "closer@subsidy.local", "name": "Records Officer"},
    Role.BENEFICIARY: {
        "email": "beneficiary@example.com",
        "name": "Juan Pérez García",
        "national_id": "12345678-9",
    },
    Role.LANDLORD: {
        "email": "landlord@example.com",
        "name": "María López Rodríguez",
        "national_id": "98765432-1",
    },
}


def seed_demo_users(db: Session) -> Dict[Role, User]:
    """
    Create the demo users.

    Args:
        db: Database session

    Returns:
        Dict mapping role to User object
    """
    users = {}

    for role, config in DEMO_USERS.items():
        existing = db.query(User).filter(User.email == config["email"]).first()
        if existing:
            users[role] = existing
            continue

        user = User(
            id=uuid.uuid4(),
            email=config["email"],
            name=config["name"],
            national_id=config.get("national_id"),
            role=role.value,
            is_active=True,
        )
        db.add(user)
        users[role] = user

    db.flush()
    return users
