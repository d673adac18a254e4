import os

from sqlalchemy.orm import Session

from app.db.session import SessionLocal
from app.core.security import issue_actor_token
from app.models.enums import GlobalRole
from app.services.users_service import UsersService


def seed():
    """
    Bootstrap the first Owner so global roles can be administered, and print
    a bearer token for it (local and staging only).
    """
    db: Session = SessionLocal()
    try:
        owner = UsersService().ensure_user(
            db,
            email=os.getenv("SEED_OWNER_EMAIL", "owner@example.com"),
            full_name=os.getenv("SEED_OWNER_NAME", "Platform Owner"),
            global_role=GlobalRole.OWNER,
        )
        print(f"owner: {owner.id} {owner.email}")
        print(f"token: {issue_actor_token(owner.id, owner.global_role)}")
    finally:
        db.close()


if __name__ == "__main__":
    seed()
