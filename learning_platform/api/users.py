"""用户 API。"""

from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import BaseModel, Field

from learning_platform.dependencies import get_facade
from learning_platform.hydration import to_record, to_records
from learning_platform.models import UserRole
from learning_platform.services import CatalogFacade

router = APIRouter()


# === Schemas ===

class UserCreate(BaseModel):
    name: str
    email: str
    role: UserRole
    phone_number: Optional[str] = None


class UserUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    email: Optional[str] = None
    role: Optional[UserRole] = None
    phone_number: Optional[str] = None


class ProfileUpdate(BaseModel):
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    city: Optional[str] = None
    country: Optional[str] = None
    website_url: Optional[str] = None
    linkedin_url: Optional[str] = None
    github_url: Optional[str] = None


# === API 端点 ===

@router.post("/", status_code=status.HTTP_201_CREATED)
def create_user(data: UserCreate, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    user = facade.create_user(data.name, data.email, data.role, data.phone_number)
    return to_record(user)


@router.get("/")
def list_users(
    role: Optional[UserRole] = None,
    name: Optional[str] = Query(default=None, description="姓名关键字，不区分大小写"),
    facade: CatalogFacade = Depends(get_facade),
) -> List[Dict[str, Any]]:
    users = facade.search_users(name) if name else facade.list_users(role)
    if name and role is not None:
        users = [user for user in users if user.role == role]
    return to_records(users)


@router.get("/lookup")
def find_user(
    email: str = Query(..., min_length=3), facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    return to_record(facade.find_user_by_email(email))


@router.get("/{user_id}")
def get_user(user_id: int, facade: CatalogFacade = Depends(get_facade)) -> Dict[str, Any]:
    """用户及其资料。"""
    return facade.load_record("user-profile", user_id)


@router.patch("/{user_id}")
def update_user(
    user_id: int, data: UserUpdate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    user = facade.update_user(user_id, **data.model_dump(exclude_unset=True))
    return to_record(user)


@router.put("/{user_id}/profile")
def update_profile(
    user_id: int, data: ProfileUpdate, facade: CatalogFacade = Depends(get_facade)
) -> Dict[str, Any]:
    profile = facade.upsert_profile(user_id, **data.model_dump(exclude_unset=True))
    return to_record(profile)


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_user(user_id: int, facade: CatalogFacade = Depends(get_facade)) -> None:
    facade.delete_user(user_id)
