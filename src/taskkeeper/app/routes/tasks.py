from fastapi import APIRouter, Depends, HTTPException, Request, Response
from taskkeeper.domain.task_models import TaskCreate, TaskRecord, TaskValidationError
from taskkeeper.services.task_service import TaskService

router = APIRouter(prefix="/api/tasks", tags=["tasks"])


def get_service(request: Request) -> TaskService:
    # wired in main.create_app
    svc = getattr(request.app.state, "task_service", None)
    if svc is None:
        raise RuntimeError("TaskService not wired")
    return svc


def _request_id(request: Request):
    return getattr(request.state, "request_id", None)


@router.post("", response_model=TaskRecord, status_code=201)
def create_task(payload: TaskCreate, request: Request, svc: TaskService = Depends(get_service)):
    try:
        return svc.create_task(payload, correlation_id=_request_id(request))
    except TaskValidationError as e:
        raise HTTPException(status_code=422, detail={"field": e.field, "message": e.message})


@router.get("", response_model=list[TaskRecord])
def list_tasks(request: Request, svc: TaskService = Depends(get_service)):
    return list(svc.list_tasks(correlation_id=_request_id(request)))


@router.get("/{task_id}", response_model=TaskRecord)
def get_task(task_id: str, request: Request, svc: TaskService = Depends(get_service)):
    task = svc.get_task(task_id, correlation_id=_request_id(request))
    if not task:
        raise HTTPException(status_code=404, detail="Task not found")
    return task


@router.delete("/{task_id}", status_code=204)
def delete_task(task_id: str, request: Request, svc: TaskService = Depends(get_service)):
    if not svc.remove_task(task_id, correlation_id=_request_id(request)):
        raise HTTPException(status_code=404, detail="Task not found")
    return Response(status_code=204)


@router.delete("", status_code=204)
def delete_task_by_title(title: str, request: Request, svc: TaskService = Depends(get_service)):
    if not svc.remove_task_by_title(title, correlation_id=_request_id(request)):
        raise HTTPException(status_code=404, detail=f"No task titled {title!r}")
    return Response(status_code=204)
