from datetime import datetime, timedelta
from typing import Optional
from jose import JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from models.user import User, UserRole
from schemas.user import TokenData
from core.config import settings
from core.exceptions import AuthenticationError, ConflictError
import logging

logger = logging.getLogger(__name__)

# Password hashing context
pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")

TOKEN_ISSUER = "titipin"

def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def get_password_hash(password: str) -> str:
    """Hash a password."""
    return pwd_context.hash(password)

def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a signed JWT access token."""
    to_encode = data.copy()

    if expires_delta:
        expire = datetime.utcnow() + expires_delta
    else:
        expire = datetime.utcnow() + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({
        "exp": expire,
        "iat": datetime.utcnow(),
        "iss": TOKEN_ISSUER,
        "type": "access"
    })

    encoded_jwt = jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    logger.info(f"Access token created for user: {data.get('sub')}")

    return encoded_jwt

def create_token_for_user(user: User, expires_delta: Optional[timedelta] = None) -> str:
    return create_access_token(
        data={"sub": user.email, "user_id": user.id, "role": user.role.value},
        expires_delta=expires_delta
    )

def verify_token(token: str) -> Optional[TokenData]:
    """Decode a JWT token, returning None when it is invalid or expired."""
    try:
        # jose checks the exp claim during decode
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            issuer=TOKEN_ISSUER
        )
    except JWTError as e:
        logger.warning(f"JWT verification failed: {str(e)}")
        return None

    email = payload.get("sub")
    user_id = payload.get("user_id")
    if email is None or user_id is None:
        logger.warning("Token missing required claims")
        return None

    return TokenData(email=email, user_id=user_id, role=payload.get("role"))

def get_user_by_email(db: Session, email: str) -> Optional[User]:
    email = email.lower().strip()
    return db.query(User).filter(User.email == email).first()

def get_user_by_id(db: Session, user_id: int) -> Optional[User]:
    return db.query(User).filter(User.id == user_id).first()

def resolve_user_from_token(db: Session, token: Optional[str]) -> User:
    """Resolve a bearer token to an active user, the identity behind every request."""
    if not token:
        raise AuthenticationError("Authentication credentials required")

    token_data = verify_token(token)
    if token_data is None:
        raise AuthenticationError("Could not validate credentials")

    user = get_user_by_id(db, token_data.user_id)
    if user is None or user.email != token_data.email:
        logger.warning(f"Token valid but user not found: {token_data.email}")
        raise AuthenticationError("User not found")

    if not user.is_active:
        logger.warning(f"Token valid but user inactive: {token_data.email}")
        raise AuthenticationError("Account is inactive")

    return user

def authenticate_user(db: Session, email: str, password: str) -> Optional[User]:
    """Authenticate a user with email and password."""
    user = get_user_by_email(db, email)
    if not user:
        logger.warning(f"Authentication attempt with non-existent email: {email}")
        return None

    if not user.is_active:
        logger.warning(f"Authentication attempt with inactive user: {email}")
        return None

    if not verify_password(password, user.password_hash):
        logger.warning(f"Authentication attempt with invalid password for user: {email}")
        return None

    logger.info(f"Successful authentication for user: {email}")
    return user

def create_user(db: Session, email: str, password: str, full_name: str,
                role: UserRole, phone: Optional[str] = None) -> User:
    """Create a new user, rejecting duplicate email or phone."""
    if get_user_by_email(db, email):
        logger.warning(f"Attempt to create user with existing email: {email}")
        raise ConflictError("User with this email already exists", details={"field": "email"})

    if phone and db.query(User).filter(User.phone == phone).first():
        logger.warning(f"Attempt to create user with existing phone: {phone}")
        raise ConflictError("User with this phone number already exists", details={"field": "phone"})

    db_user = User(
        email=email.lower().strip(),
        password_hash=get_password_hash(password),
        full_name=full_name,
        role=role,
        phone=phone,
        is_active=True,
        created_at=datetime.utcnow(),
        updated_at=datetime.utcnow()
    )

    try:
        db.add(db_user)
        db.commit()
        db.refresh(db_user)
    except IntegrityError as e:
        db.rollback()
        logger.error(f"Database integrity error creating user {email}: {str(e)}")
        raise ConflictError("User with this email or phone already exists")

    logger.info(f"User created successfully: {email} with role {role.value}")
    return db_user

def update_last_login(db: Session, user: User):
    """Update user's last login timestamp."""
    try:
        user.last_login = datetime.utcnow()
        db.commit()
        db.refresh(user)
    except Exception as e:
        db.rollback()
        logger.error(f"Error updating last login for user {user.email}: {str(e)}")
        raise
