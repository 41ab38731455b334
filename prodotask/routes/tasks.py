from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.encoders import jsonable_encoder

from prodotask.auth import ensure_owned, get_gateway, require_user
from prodotask.db import Gateway
from prodotask.errors import TransactionAborted
from prodotask.schemas import TaskCreate, TaskPatch, TaskStatus, User
from prodotask.services import task_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/v1/tasks")
async def list_tasks(
    status: Optional[TaskStatus] = Query(None),
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    if status:
        items = await task_service.list_tasks_by_status(gateway, user.id, status)
    else:
        items = await task_service.list_tasks_by_user(gateway, user.id)
    return {"items": jsonable_encoder(items)}


@router.get("/v1/tasks/overdue")
async def list_overdue_tasks(user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    items = await task_service.list_overdue_tasks(gateway, user.id)
    return {"items": jsonable_encoder(items)}


@router.post("/v1/tasks")
async def create_task(payload: TaskCreate, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    record = await task_service.create_task(gateway, user.id, payload)
    return jsonable_encoder(record)


@router.get("/v1/tasks/{task_id}")
async def get_task(task_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    record = ensure_owned(await task_service.get_task_by_id(gateway, task_id), user, "Task")
    return jsonable_encoder(record)


@router.patch("/v1/tasks/{task_id}")
async def patch_task(
    task_id: int,
    payload: TaskPatch,
    user: User = Depends(require_user),
    gateway: Gateway = Depends(get_gateway),
):
    ensure_owned(await task_service.get_task_by_id(gateway, task_id), user, "Task")
    record = await task_service.update_task(gateway, task_id, payload)
    if record is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return jsonable_encoder(record)


@router.post("/v1/tasks/{task_id}/complete")
async def complete_task(task_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    ensure_owned(await task_service.get_task_by_id(gateway, task_id), user, "Task")
    try:
        record = await task_service.complete_task(gateway, task_id)
    except TransactionAborted as exc:
        logger.exception("Failed to complete task %s: %s", task_id, exc)
        raise HTTPException(status_code=500, detail="Internal error")
    if record is None:
        raise HTTPException(status_code=404, detail="Task not found")
    return jsonable_encoder(record)


@router.delete("/v1/tasks/{task_id}")
async def delete_task(task_id: int, user: User = Depends(require_user), gateway: Gateway = Depends(get_gateway)):
    ensure_owned(await task_service.get_task_by_id(gateway, task_id), user, "Task")
    try:
        deleted = await task_service.delete_task(gateway, task_id)
    except TransactionAborted as exc:
        logger.exception("Failed to delete task %s: %s", task_id, exc)
        raise HTTPException(status_code=500, detail="Internal error")
    return {"ok": deleted}
