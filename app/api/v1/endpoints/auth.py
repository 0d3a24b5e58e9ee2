# app/api/v1/endpoints/auth.py
import hmac
import logging
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, status, Request, Response
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError, PyMongoError

from app.schemas.user import AuthStatus, SessionUser, Token, User, UserCreate, UserLogin
from app.crud import user as user_crud
from app.db.mongodb_utils import get_database
from app.core.config import Settings
from app.core.security import (
    SESSION_TOKEN_TTL,
    burn_password_check,
    create_session_token,
    verify_password,
)
from app.api.v1.dependencies import get_client_ip, get_settings, try_get_current_user

logger = logging.getLogger(__name__)

router = APIRouter()


def _set_session_cookie(response: Response, token: str, settings: Settings) -> None:
    # Cross-site front ends need SameSite=None, which browsers only accept with Secure
    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        httponly=True,
        secure=True,
        samesite="none",
        max_age=int(SESSION_TOKEN_TTL.total_seconds()),
        path="/",
    )


@router.post("/register", response_model=User, status_code=status.HTTP_201_CREATED)
async def register(
    request: Request,
    user_in: UserCreate,
    db: AsyncIOMotorDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    """Registers a new user. Requires the pre-shared registration secret."""
    if not hmac.compare_digest(user_in.secret.encode(), settings.registration_secret.encode()):
        logger.warning(f"Registration with invalid secret from IP {get_client_ip(request)}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid registration secret")

    if await user_crud.get_user_by_username(db, user_in.username):
        logger.warning(f"Duplicate username registration attempt: {user_in.username}")
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already registered")

    try:
        new_user = await user_crud.create_user(db, user=user_in)
    except DuplicateKeyError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Username already registered")
    except PyMongoError as e:
        logger.error(f"User creation failed for {user_in.username}: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="User registration failed"
        )

    logger.info(f"New user registered successfully: {new_user.username}")
    return User(id=new_user.id, username=new_user.username)


@router.post("/login")
async def login(
    response: Response,
    request: Request,
    credentials: UserLogin,
    db: AsyncIOMotorDatabase = Depends(get_database),
    settings: Settings = Depends(get_settings),
):
    """Verifies the password and issues a one-hour session credential."""
    client_ip = get_client_ip(request)

    user = await user_crud.get_user_by_username(db, credentials.username)
    if user is None:
        valid = burn_password_check(credentials.password)
    else:
        valid = verify_password(credentials.password, user["hashed_password"])

    if not valid:
        logger.warning(f"Failed login attempt for {credentials.username} from IP {client_ip}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Incorrect username or password",
            headers={"WWW-Authenticate": "Bearer"},
        )

    token = create_session_token(user["id"], user["username"], settings)
    logger.info(f"Successful login for user {user['username']} from IP {client_ip}")

    if settings.uses_cookie_transport:
        _set_session_cookie(response, token, settings)
        return {"message": "Logged in", "username": user["username"]}

    return Token(token=token)


@router.get("/auth-check", response_model=AuthStatus)
async def auth_check(current_user: Optional[SessionUser] = Depends(try_get_current_user)):
    """Reports whether the presented session credential is currently valid."""
    if current_user is None:
        return AuthStatus(authenticated=False)
    return AuthStatus(authenticated=True, username=current_user.username)


@router.post("/logout")
async def logout(response: Response, request: Request, settings: Settings = Depends(get_settings)):
    """Clears the session cookie. Header-borne tokens simply expire."""
    response.delete_cookie(
        key=settings.session_cookie_name,
        path="/",
        secure=True,
        httponly=True,
        samesite="none",
    )
    logger.info(f"User logout from IP {get_client_ip(request)}")
    return {"message": "Successfully logged out"}
