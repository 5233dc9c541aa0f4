from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from venue.core.rate_limiter import LimitedAction, client_identity, enforce_rate_limit
from venue.db.session import get_db
from venue.schemas.auth import LoginRequest, RegisterRequest, TokenResponse
from venue.schemas.user import UserResponse
from venue.services.auth_service import login_user, register_user

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def register(
    payload: RegisterRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> UserResponse:
    enforce_rate_limit(LimitedAction.REGISTER, client_identity(request))
    user = register_user(payload=payload, db=db)
    return UserResponse.model_validate(user)


@router.post("/login", response_model=TokenResponse, status_code=status.HTTP_200_OK)
def login(
    payload: LoginRequest,
    request: Request,
    db: Session = Depends(get_db),
) -> TokenResponse:
    enforce_rate_limit(LimitedAction.LOGIN, client_identity(request))
    return login_user(payload=payload, db=db)
