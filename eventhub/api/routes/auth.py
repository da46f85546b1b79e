from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from eventhub.api.dependencies import get_auth_context, get_db
from eventhub.api.schemas.schemas import (
    AuthResponse,
    ForgotPasswordRequest,
    LoginRequest,
    MessageResponse,
    RegisterRequest,
    ResetPasswordRequest,
)
from eventhub.application.auth_service import AuthService

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(request: RegisterRequest, db: Session = Depends(get_db)):
    result = AuthService(db).register(request.name, request.email, request.password)
    return AuthResponse.model_validate(result, from_attributes=True)


@router.post("/login", response_model=AuthResponse)
def login(request: LoginRequest, db: Session = Depends(get_db)):
    result = AuthService(db).login(request.email, request.password)
    return AuthResponse.model_validate(result, from_attributes=True)


@router.post("/logout", response_model=MessageResponse)
def logout(context=Depends(get_auth_context), db: Session = Depends(get_db)):
    _, claims = context
    AuthService(db).logout(claims)
    return MessageResponse(message="Logged out successfully")


@router.post("/forgot-password", response_model=MessageResponse)
def forgot_password(request: ForgotPasswordRequest, db: Session = Depends(get_db)):
    return MessageResponse(message=AuthService(db).forgot_password(request.email))


@router.put("/reset-password/{token}", response_model=MessageResponse)
def reset_password(token: str, request: ResetPasswordRequest, db: Session = Depends(get_db)):
    AuthService(db).reset_password(token, request.password)
    return MessageResponse(message="Password has been reset")
