from fastapi import APIRouter, Depends, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
import logging

from database.connection import get_db
from services.auth import (
    authenticate_user,
    create_user,
    create_token_for_user,
    resolve_user_from_token,
    update_last_login
)
from schemas.user import UserLogin, UserRegister, Token, UserResponse
from models.user import User
from core.exceptions import AuthenticationError
from core.response import success_response

logger = logging.getLogger(__name__)

router = APIRouter()
security = HTTPBearer(auto_error=False)

# Dependency to get current user
def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(security),
    db: Session = Depends(get_db)
) -> User:
    """Resolve the bearer token to the active user making the request."""
    token = credentials.credentials if credentials else None
    return resolve_user_from_token(db, token)

@router.post("/register", status_code=status.HTTP_201_CREATED)
def register(user_data: UserRegister, db: Session = Depends(get_db)):
    """Register a customer, deliverer or merchant account."""
    logger.info(f"Registration attempt for email: {user_data.email}")

    user = create_user(
        db=db,
        email=user_data.email,
        password=user_data.password,
        full_name=user_data.full_name,
        role=user_data.role,
        phone=user_data.phone
    )

    token = Token(
        access_token=create_token_for_user(user),
        user=UserResponse.from_orm(user)
    )
    return success_response(data=token, message="Registration successful")

@router.post("/login")
def login(credentials: UserLogin, db: Session = Depends(get_db)):
    """Exchange email and password for an access token."""
    user = authenticate_user(db, credentials.email, credentials.password)
    if not user:
        raise AuthenticationError("Incorrect email or password")

    update_last_login(db, user)

    token = Token(
        access_token=create_token_for_user(user),
        user=UserResponse.from_orm(user)
    )
    return success_response(data=token, message="Login successful")

@router.get("/me")
def read_current_user(current_user: User = Depends(get_current_user)):
    return success_response(data=UserResponse.from_orm(current_user), message="Current user")
