# app/routers/auth.py
from fastapi import APIRouter, Depends, status
from fastapi.security import OAuth2PasswordRequestForm
from sqlalchemy.ext.asyncio import AsyncSession

from app.core import security
from app.core.config import settings
from app.db import database
from app.schemas.user import Token, UserCreate, UserOut
from app.services.user_service import UserService
from app.utils.exceptions import UnauthorizedError
from app.utils.rate_limit import check_rate_limit

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserOut, status_code=status.HTTP_201_CREATED)
async def register(user: UserCreate, db: AsyncSession = Depends(database.get_db)):
    return await UserService(db).register(user)


@router.post("/login", response_model=Token)
async def login(
    form_data: OAuth2PasswordRequestForm = Depends(),
    db: AsyncSession = Depends(database.get_db),
):
    email = form_data.username.lower()
    await check_rate_limit(
        f"rl:login:{email}",
        settings.LOGIN_RATE_LIMIT_ATTEMPTS,
        settings.LOGIN_RATE_LIMIT_WINDOW_SECONDS,
    )

    user = await UserService(db).authenticate(email, form_data.password)
    if not user:
        raise UnauthorizedError("Invalid credentials")
    token = security.create_access_token({"sub": user.email})
    return {"access_token": token, "token_type": "bearer"}
