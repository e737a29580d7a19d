from pydantic import BaseModel, EmailStr, validator, Field
from typing import Optional, Union
from datetime import datetime
from models.user import UserRole, PUBLIC_REGISTRATION_ROLES
import re

# Base User Schema
class UserBase(BaseModel):
    email: EmailStr
    full_name: str = Field(..., min_length=2, max_length=100)
    phone: Optional[str] = Field(None, max_length=20)
    role: Union[UserRole, str] = UserRole.CUSTOMER

# User Registration Schema
class UserRegister(UserBase):
    password: str = Field(..., min_length=8, max_length=128)
    confirm_password: str = Field(..., min_length=8, max_length=128)

    @validator('full_name')
    def validate_full_name(cls, v):
        if not v or len(v.strip()) < 2:
            raise ValueError('Full name must be at least 2 characters long')
        if not re.match(r"^[a-zA-Z\s\-'.]+$", v.strip()):
            raise ValueError('Full name contains invalid characters')
        return v.strip()

    @validator('phone')
    def validate_phone(cls, v):
        if v is None:
            return v
        # Remove all non-digit characters
        clean_phone = re.sub(r'\D', '', v)
        if len(clean_phone) < 9 or len(clean_phone) > 15:
            raise ValueError('Phone number must be between 9 and 15 digits')
        return clean_phone

    @validator('password')
    def validate_password(cls, v):
        if not any(c.isupper() for c in v):
            raise ValueError('Password must contain at least one uppercase letter')
        if not any(c.islower() for c in v):
            raise ValueError('Password must contain at least one lowercase letter')
        if not any(c.isdigit() for c in v):
            raise ValueError('Password must contain at least one digit')
        return v

    @validator('confirm_password')
    def validate_confirm_password(cls, v, values):
        if 'password' in values and v != values['password']:
            raise ValueError('Passwords do not match')
        return v

    @validator('role')
    def validate_role(cls, v):
        if isinstance(v, str):
            try:
                v = UserRole(v.upper())
            except ValueError:
                valid_roles = [role.value for role in UserRole]
                raise ValueError(f'Invalid role. Must be one of: {valid_roles}')
        if v not in PUBLIC_REGISTRATION_ROLES:
            raise ValueError('This role cannot be chosen at registration')
        return v

# User Login Schema
class UserLogin(BaseModel):
    email: EmailStr
    password: str

# User Response Schema
class UserResponse(BaseModel):
    id: int
    email: str
    full_name: str
    phone: Optional[str] = None
    role: UserRole
    is_active: bool
    created_at: datetime
    last_login: Optional[datetime] = None

    class Config:
        from_attributes = True

class UserSummary(BaseModel):
    id: int
    full_name: str

    class Config:
        from_attributes = True

# Token Schema
class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"
    user: UserResponse

# Token Data Schema
class TokenData(BaseModel):
    email: Optional[str] = None
    user_id: Optional[int] = None
    role: Optional[str] = None
