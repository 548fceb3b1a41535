from typing import List

from fastapi import APIRouter, Depends, HTTPException

from studiodesk.api import schemas
from studiodesk.api.dependencies import get_task_lifecycle
from studiodesk.errors import NotFoundError, ValidationError
from studiodesk.services.tasks import TaskLifecycle

router = APIRouter(prefix="/tasks", tags=["Tasks"])


@router.get("", response_model=List[schemas.TaskOut])
def list_tasks(tasks: TaskLifecycle = Depends(get_task_lifecycle)):
    return [task.to_dict() for task in tasks.list()]


@router.get("/{task_id}", response_model=schemas.TaskOut)
def get_task(task_id: str, tasks: TaskLifecycle = Depends(get_task_lifecycle)):
    try:
        return tasks.get(task_id).to_dict()
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")


@router.post("", response_model=schemas.TaskOut, status_code=201)
def create_task(
    request: schemas.TaskCreate,
    tasks: TaskLifecycle = Depends(get_task_lifecycle),
):
    """Create a task; fires task_created."""
    try:
        task = tasks.create(request.model_dump(by_alias=True, exclude_none=True))
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return task.to_dict()


@router.put("/{task_id}", response_model=schemas.TaskOut)
def update_task(
    task_id: str,
    request: schemas.TaskUpdate,
    tasks: TaskLifecycle = Depends(get_task_lifecycle),
):
    """Patch a task; fires task_status_changed or task_updated."""
    try:
        task = tasks.update(task_id, request.model_dump(by_alias=True, exclude_unset=True))
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")
    except ValidationError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    return task.to_dict()


@router.delete("/{task_id}", response_model=schemas.TaskDeleted)
def delete_task(task_id: str, tasks: TaskLifecycle = Depends(get_task_lifecycle)):
    """Delete a task; fires task_deleted with the removed record."""
    try:
        task = tasks.delete(task_id)
    except NotFoundError:
        raise HTTPException(status_code=404, detail="Task not found")
    return {"message": "Task deleted successfully", "task": task.to_dict()}
