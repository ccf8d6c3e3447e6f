from sqlmodel import Session, select
from algomakers.models.user_model import User, UserRole
from algomakers.core.config import settings
from algomakers.db.session import engine
import logging
from sqlalchemy.exc import SQLAlchemyError
import traceback

logger = logging.getLogger(__name__)

def ensure_admin_exists():
    """Ensure that at least one admin user exists in the database."""
    with Session(engine) as session:
        try:
            logger.info("Checking for existing admin user...")
            admin = session.exec(
                select(User).where(User.role == UserRole.ADMIN)
            ).first()
            if admin:
                return

            logger.warning("No admin user found. Creating default admin...")
            admin = User(
                email=settings.DEFAULT_ADMIN_EMAIL,
                name=settings.DEFAULT_ADMIN_NAME,
                hashed_password=User.get_password_hash(settings.DEFAULT_ADMIN_PASSWORD),
                role=UserRole.ADMIN,
            )
            session.add(admin)
            session.commit()
            session.refresh(admin)
            logger.info(f"Default admin user created successfully with ID: {admin.id}")
            logger.warning(
                "IMPORTANT: Please change the default admin password immediately! "
                f"Default admin login: {settings.DEFAULT_ADMIN_EMAIL}"
            )
        except SQLAlchemyError as e:
            logger.error(f"Database error: {str(e)}")
            logger.error(traceback.format_exc())
            raise
