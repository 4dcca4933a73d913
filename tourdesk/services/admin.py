import logging
from sqlalchemy.orm import Session

from ..core import security
from ..db import models

logger = logging.getLogger(__name__)


def ensure_admin_exists(session: Session, login: str, password: str) -> models.AdminUser:
    admin = session.query(models.AdminUser).filter_by(login=login).first()
    if admin is None:
        admin = models.AdminUser(
            login=login,
            password_hash=security.get_password_hash(password),
            role=models.AdminRole.admin,
        )
        session.add(admin)
        session.commit()
        logger.info("Created default admin user '%s'", login)
        return admin

    changed = not security.verify_password(password, admin.password_hash)
    if changed:
        admin.password_hash = security.get_password_hash(password)
    if admin.role != models.AdminRole.admin:
        admin.role = models.AdminRole.admin
        changed = True
    if changed:
        session.commit()
        logger.info("Reset default admin user '%s'", login)
    return admin
