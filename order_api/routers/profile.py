from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from order_api.auth import Caller, require_authenticated
from order_api.database import get_db
from order_api.services import profile_service
from shared import schemas

router = APIRouter()


@router.get("", response_model=schemas.CustomerProfile | None)
async def get_caller_user_profile(
    caller: Caller = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
) -> schemas.CustomerProfile | None:
    return await profile_service.get_profile(db, caller.principal)


@router.put("", status_code=status.HTTP_204_NO_CONTENT)
async def save_caller_user_profile(
    body: schemas.CustomerProfile,
    caller: Caller = Depends(require_authenticated),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await profile_service.save_profile(db, caller.principal, body)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
