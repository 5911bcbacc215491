import logging
import os
from sqlalchemy import select
from backoffice.db.session import SessionLocal
from backoffice.models.user import User
from backoffice.core.security import hash_password

log = logging.getLogger(__name__)

def main():
    email = os.environ.get("SEED_ADMIN_EMAIL", "admin@vpengenharia.com").strip().lower()
    password = os.environ.get("SEED_ADMIN_PASS", "admin123456")
    name = os.environ.get("SEED_ADMIN_NAME", "Admin Principal")

    db = SessionLocal()
    try:
        existing = db.execute(select(User).where(User.email == email)).scalar_one_or_none()
        if existing:
            log.info("seed admin exists email=%s", email)
            return
        db.add(
            User(
                name=name,
                email=email,
                password_hash=hash_password(password),
                role="admin",
                department="Administração",
                position="Administrador Principal",
                is_active=True,
            )
        )
        db.commit()
        log.info("seed admin created email=%s", email)
    finally:
        db.close()

if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    main()
