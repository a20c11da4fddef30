from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ..dependencies import get_current_user_id, get_db, get_orchestrator
from ..repositories.plans import PlanRepository
from ..schemas.generation import PlanKind, TrainingPlanRequest
from ..schemas.plans import GeneratedPlanRead, GeneratedPlanSummary
from ..schemas.tasks import TaskStatusResponse, TaskSubmissionResponse
from ..services.orchestrator import GenerationOrchestrator

router = APIRouter()


@router.post("/generate", response_model=TaskSubmissionResponse, status_code=status.HTTP_202_ACCEPTED)
async def generate_training_plan(
    request: TrainingPlanRequest,
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.start(user_id, request)


@router.get("/tasks/{task_id}", response_model=TaskStatusResponse)
async def get_training_plan_task_status(
    task_id: str,
    user_id: str = Depends(get_current_user_id),
    orchestrator: GenerationOrchestrator = Depends(get_orchestrator),
):
    return await orchestrator.get_status(task_id, user_id, PlanKind.TRAINING)


@router.get("/", response_model=list[GeneratedPlanSummary])
def list_training_plans(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    return PlanRepository.list_for_owner(db, user_id, PlanKind.TRAINING, skip=skip, limit=limit)


@router.get("/{plan_id}", response_model=GeneratedPlanRead)
def get_training_plan(
    plan_id: int,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    plan = PlanRepository.get(db, plan_id, user_id, PlanKind.TRAINING)
    if plan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Training plan not found")
    return plan
