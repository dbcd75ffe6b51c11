# src/ds_admin/api/router.py
"""Admin REST API."""
from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.ds_admin.application.service import AdminService
from src.ds_common.database import get_db_session
from src.ds_common.response import ApiResponse, success_response
from src.ds_gateway.auth.dependencies import require_admin
from src.ds_gateway.user.db_models import UserModel

router = APIRouter(prefix="/admin", tags=["admin"])
_service = AdminService()


class SetConfigRequest(BaseModel):
    value: str = Field(..., min_length=1, max_length=64)


@router.get("/config")
async def get_config(
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.get_config(db)
    return success_response(result)


@router.put("/config/{key}")
async def set_config(
    key: str,
    body: SetConfigRequest,
    admin: Annotated[UserModel, Depends(require_admin)],
    db: Annotated[AsyncSession, Depends(get_db_session)],
) -> ApiResponse:
    result = await _service.set_config(key, body.value.strip(), str(admin.id), db)
    return success_response(result)
