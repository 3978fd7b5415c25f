import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.security import OAuth2PasswordBearer, OAuth2PasswordRequestForm
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from pymongo.database import Database

import config
from database import create_document, get_db, get_document, to_object_id
from schemas import User as UserSchema, UserCreate

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login")
optional_oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/login", auto_error=False)

router = APIRouter(prefix="/api", tags=["auth"])


class Token(BaseModel):
    access_token: str
    token_type: str = "bearer"


class UserOut(BaseModel):
    id: str
    name: str
    email: Optional[str] = None
    role: str = "customer"
    is_active: bool = True
    is_anonymous: bool = False

    @property
    def is_admin(self) -> bool:
        return self.role == "admin"


def verify_password(plain_password, hashed_password):
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password):
    return pwd_context.hash(password)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None):
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=config.ACCESS_TOKEN_EXPIRE_MINUTES))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, config.SECRET_KEY, algorithm=config.ALGORITHM)


def user_to_out(user: dict) -> UserOut:
    return UserOut(
        id=str(user["_id"]),
        name=user.get("name"),
        email=user.get("email"),
        role=user.get("role", "customer"),
        is_active=user.get("is_active", True),
        is_anonymous=user.get("is_anonymous", False),
    )


def _user_from_token(token: str, db: Database) -> UserOut:
    credentials_exception = HTTPException(
        status_code=401,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
        user_id: str = payload.get("sub")
        if user_id is None:
            raise credentials_exception
    except JWTError:
        raise credentials_exception
    try:
        user = db["user"].find_one({"_id": to_object_id(user_id)})
    except HTTPException:
        raise credentials_exception
    if not user:
        raise credentials_exception
    if not user.get("is_active", True):
        raise HTTPException(status_code=403, detail="Account is disabled")
    return user_to_out(user)


def get_current_user(token: str = Depends(oauth2_scheme), db: Database = Depends(get_db)) -> UserOut:
    return _user_from_token(token, db)


def get_optional_user(
    token: Optional[str] = Depends(optional_oauth2_scheme), db: Database = Depends(get_db)
) -> Optional[UserOut]:
    if not token:
        return None
    return _user_from_token(token, db)


def require_admin(current: UserOut = Depends(get_current_user)) -> UserOut:
    if not current.is_admin:
        raise HTTPException(status_code=403, detail="Admin privileges required")
    return current


@router.post("/register", response_model=UserOut)
def register(user: UserCreate, db: Database = Depends(get_db)):
    email = user.email.lower()
    if db["user"].find_one({"email": email}):
        raise HTTPException(400, "Email already registered")
    role = "admin" if email in config.ADMIN_EMAILS else "customer"
    data = UserSchema(name=user.name, email=email, password_hash=get_password_hash(user.password), role=role)
    user_id = create_document("user", data)
    logger.info("Registered user %s (%s)", user_id, role)
    return user_to_out(get_document("user", user_id))


@router.post("/login", response_model=Token)
def login(form_data: OAuth2PasswordRequestForm = Depends(), db: Database = Depends(get_db)):
    user = db["user"].find_one({"email": form_data.username.lower()})
    if not user or not user.get("password_hash") or not verify_password(form_data.password, user["password_hash"]):
        raise HTTPException(400, "Incorrect email or password")
    if not user.get("is_active", True):
        raise HTTPException(403, "Account is disabled")
    return Token(access_token=create_access_token({"sub": str(user["_id"])}))


@router.post("/auth/anonymous", response_model=Token)
def sign_in_anonymously():
    user_id = create_document("user", UserSchema(name="Guest", is_anonymous=True))
    return Token(access_token=create_access_token({"sub": user_id}))


@router.get("/me", response_model=UserOut)
def me(current: UserOut = Depends(get_current_user)):
    return current
