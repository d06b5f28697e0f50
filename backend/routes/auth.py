from fastapi import APIRouter, Depends, Request

from models.auth import UserLogin, UserResponse, TokenResponse
from services.auth import authenticate_user, create_token, get_current_user
from middleware.rate_limit import limit_auth


router = APIRouter(prefix="/auth", tags=["Auth"])


@router.post("/login", response_model=TokenResponse)
@limit_auth()
async def login(request: Request, data: UserLogin):
    user = await authenticate_user(data.email, data.password)
    return TokenResponse(access_token=create_token(user), user=UserResponse(**user))


@router.get("/me", response_model=UserResponse)
async def get_me(user: dict = Depends(get_current_user)):
    return UserResponse(**user)
