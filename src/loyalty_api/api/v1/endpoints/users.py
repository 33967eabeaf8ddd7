from fastapi import APIRouter, Depends

from loyalty_api.api.dependencies.session import require_current_user
from loyalty_api.models.user import User
from loyalty_api.schemas.loyalty import UserResponse


router = APIRouter(prefix="/users", tags=["users"])


@router.get("/me", response_model=UserResponse)
async def get_current_user(user: User = Depends(require_current_user)) -> UserResponse:
    return UserResponse.model_validate(user)
