from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from app.auth.rbac import admin_only, parent_or_admin
from app.auth.schemas import CurrentUser
from app.core.exceptions import ServiceError
from app.core.pagination import ListParams
from app.core.schemas import ApiResponse, MessageResponse
from app.db.session import get_db

from .schemas import (
    LinkedParent,
    LinkedStudent,
    LinkStudentRequest,
    ParentCreate,
    ParentResponse,
    ParentStats,
    ParentUpdate,
)
from . import service

router = APIRouter(prefix="/api/parents", tags=["parents"])


@router.post(
    "",
    response_model=ApiResponse[ParentResponse],
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def create_parent(
    payload: ParentCreate,
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[ParentResponse]:
    try:
        parent = await service.create_parent(db, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Parent created successfully", data=parent)


@router.get("", response_model=ApiResponse[List[ParentResponse]], dependencies=[Depends(admin_only)])
async def list_parents(
    params: ListParams = Depends(),
    db: AsyncSession = Depends(get_db),
) -> ApiResponse[List[ParentResponse]]:
    """Primary parents, newest first."""
    try:
        parents, total = await service.list_parents(db, params)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(
        message="Parents retrieved successfully",
        data=parents,
        pagination=params.pagination(total),
    )


@router.get("/stats", response_model=ApiResponse[ParentStats], dependencies=[Depends(admin_only)])
async def get_parent_stats(db: AsyncSession = Depends(get_db)) -> ApiResponse[ParentStats]:
    stats = await service.get_parent_stats(db)
    return ApiResponse(message="Parent statistics retrieved successfully", data=stats)


@router.get("/student/{student_id}", response_model=ApiResponse[List[LinkedParent]])
async def get_student_parents(
    student_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(parent_or_admin),
) -> ApiResponse[List[LinkedParent]]:
    try:
        await service.ensure_student_access(db, current_user, student_id)
        parents = await service.get_student_parents(db, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Student parents retrieved successfully", data=parents)


@router.get("/{parent_id}", response_model=ApiResponse[ParentResponse])
async def get_parent(
    parent_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(parent_or_admin),
) -> ApiResponse[ParentResponse]:
    try:
        await service.ensure_parent_access(db, current_user, parent_id)
        parent = await service.get_parent(db, parent_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Parent retrieved successfully", data=parent)


@router.put("/{parent_id}", response_model=ApiResponse[ParentResponse])
async def update_parent(
    parent_id: int,
    payload: ParentUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(parent_or_admin),
) -> ApiResponse[ParentResponse]:
    """Admins update any parent; a parent updates only their own profile."""
    try:
        await service.ensure_parent_access(db, current_user, parent_id)
        parent = await service.update_parent(db, parent_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Parent updated successfully", data=parent)


@router.delete("/{parent_id}", response_model=MessageResponse, dependencies=[Depends(admin_only)])
async def delete_parent(
    parent_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.delete_parent(db, parent_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Parent deleted successfully")


@router.post(
    "/{parent_id}/link-student",
    response_model=MessageResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(admin_only)],
)
async def link_parent_to_student(
    parent_id: int,
    payload: LinkStudentRequest,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.link_parent_to_student(db, parent_id, payload)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Parent linked to student successfully")


@router.delete(
    "/{parent_id}/unlink-student/{student_id}",
    response_model=MessageResponse,
    dependencies=[Depends(admin_only)],
)
async def unlink_parent_from_student(
    parent_id: int,
    student_id: int,
    db: AsyncSession = Depends(get_db),
) -> MessageResponse:
    try:
        await service.unlink_parent_from_student(db, parent_id, student_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return MessageResponse(message="Parent unlinked from student successfully")


@router.get("/{parent_id}/students", response_model=ApiResponse[List[LinkedStudent]])
async def get_parent_students(
    parent_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: CurrentUser = Depends(parent_or_admin),
) -> ApiResponse[List[LinkedStudent]]:
    try:
        await service.ensure_parent_access(db, current_user, parent_id)
        students = await service.get_parent_students(db, parent_id)
    except ServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    return ApiResponse(message="Parent students retrieved successfully", data=students)
