# app/routers/users.py
from fastapi import APIRouter, Depends

from app.db import models
from app.schemas.user import UserOut
from app.utils.dependencies import get_current_user

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserOut)
async def get_me(current_user: models.User = Depends(get_current_user)):
    return current_user
