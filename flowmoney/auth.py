from passlib.context import CryptContext
from sqlalchemy.orm import Session

from flowmoney.domain.invite import normalize_email
from flowmoney.infrastructure.db.models import User

# pbkdf2_sha256: no native deps
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    return pwd_context.verify(password, password_hash)


def get_user_by_email(db: Session, email: str) -> User | None:
    """Emails are stored lowercase, so matching is case-insensitive."""
    return db.query(User).filter(User.email == normalize_email(email)).first()
