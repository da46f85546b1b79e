from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from eventhub.api.dependencies import get_current_user, get_db, require_admin
from eventhub.api.schemas.schemas import (
    AdminUserUpdateRequest,
    MessageResponse,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    RoleUpdateRequest,
    UserResponse,
)
from eventhub.application.user_service import UserService
from eventhub.infrastructure.db.models import User

router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
def get_profile(user: User = Depends(get_current_user)):
    return UserResponse.model_validate(user)


@router.put("/me", response_model=UserResponse)
def update_profile(
    request: ProfileUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    user = UserService(db).update_profile(user, name=request.name, email=request.email)
    return UserResponse.model_validate(user)


@router.put("/me/password", response_model=MessageResponse)
def change_password(
    request: PasswordChangeRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    UserService(db).change_password(user, request.current_password, request.new_password)
    return MessageResponse(message="Password updated successfully")


@router.delete("/me", response_model=MessageResponse)
def delete_account(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    UserService(db).delete_account(user)
    return MessageResponse(message="Account deleted")


@router.get("", response_model=list[UserResponse])
def list_users(_: User = Depends(require_admin), db: Session = Depends(get_db)):
    return [UserResponse.model_validate(user) for user in UserService(db).list_users()]


@router.get("/{user_id}", response_model=UserResponse)
def get_user(user_id: str, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    return UserResponse.model_validate(UserService(db).get_user(user_id))


@router.put("/{user_id}", response_model=UserResponse)
def update_user(
    user_id: str,
    request: AdminUserUpdateRequest,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    user = UserService(db).update_user(
        user_id,
        name=request.name,
        email=request.email,
        role=request.role,
    )
    return UserResponse.model_validate(user)


@router.patch("/{user_id}/role", response_model=UserResponse)
def update_user_role(
    user_id: str,
    request: RoleUpdateRequest,
    _: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    return UserResponse.model_validate(UserService(db).update_role(user_id, request.role))


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(user_id: str, _: User = Depends(require_admin), db: Session = Depends(get_db)):
    UserService(db).delete_user(user_id)
    return MessageResponse(message="User deleted")
