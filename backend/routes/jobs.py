# backend/routes/jobs.py
from typing import List

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.company import Client
from models.job import Job, JobPart, JobUser
from models.product import Part
from models.users import User, Role
from routes.parts import part_to_out
from schemas.job import AssignedTradie, JobCreate, JobDetail, JobOut, JobPartCreate, JobPartOut, JobPartUpdate
from utils.audit import client_ip, write_log
from utils.errors import AuthorizationDenied, NotFoundError, ValidationFailed
from utils.guards import require_pm, validate_job_access
from utils.permissions import filter_jobs, permissions_for, price_visible
from utils.session import get_current_user

router = APIRouter(prefix="/jobs", tags=["Jobs"])


def job_to_detail(db: Session, job: Job) -> JobDetail:
    rows = (
        db.query(JobUser, User)
        .join(User, User.id == JobUser.user_id)
        .filter(JobUser.job_id == job.id)
        .order_by(JobUser.assigned_at.asc())
        .all()
    )
    detail = JobDetail.model_validate(job)
    detail.tradies = [
        AssignedTradie(user_id=u.id, username=u.username, full_name=u.full_name, assigned_at=ju.assigned_at)
        for ju, u in rows
    ]
    return detail


def create_job_for(db: Session, pm: User, payload: JobCreate) -> Job:
    if not pm.business_id:
        raise ValidationFailed("Project manager must be associated with a company")
    number = payload.job_number.strip()
    if db.query(Job).filter(Job.job_number == number).first():
        raise ValidationFailed(f"Job number {number} already exists")
    if payload.client_id is not None:
        client = db.query(Client).filter(Client.id == payload.client_id).first()
        if client is None or client.business_id != pm.business_id:
            raise NotFoundError("Client not found")

    job = Job(
        name=payload.name.strip(),
        job_number=number,
        business_id=pm.business_id,
        client_id=payload.client_id,
        project_manager_id=pm.id,
        status=payload.status,
        location=payload.location,
        description=payload.description,
    )
    db.add(job)
    db.commit()
    db.refresh(job)
    return job


@router.get("", response_model=List[JobOut])
def list_jobs(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    if current_user.role == Role.SUPPLIER.value:
        return db.query(Job).order_by(Job.created_at.desc()).all()
    if not permissions_for(current_user).can_view_company_jobs:
        return []
    jobs = db.query(Job).filter(Job.business_id == current_user.business_id).order_by(Job.created_at.desc()).all()
    return filter_jobs(current_user, jobs)


@router.get("/search", response_model=List[JobOut])
def search_jobs(
    job_number: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    permissions = permissions_for(current_user)
    if current_user.role != Role.SUPPLIER.value and not permissions.can_search_by_job_number:
        raise AuthorizationDenied("Job search requires company approval", access_level=permissions.access_level)

    query = db.query(Job).filter(Job.job_number.ilike(f"%{job_number.strip()}%"))
    if current_user.role != Role.SUPPLIER.value:
        query = query.filter(Job.business_id == current_user.business_id)
    return query.order_by(Job.job_number.asc()).limit(20).all()


@router.get("/{job_id}", response_model=JobDetail)
def get_job(job: Job = Depends(validate_job_access), db: Session = Depends(get_db)):
    return job_to_detail(db, job)


@router.post("", response_model=JobOut, status_code=status.HTTP_201_CREATED)
def create_job(
    payload: JobCreate,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_pm),
):
    job = create_job_for(db, current_user, payload)
    write_log(db, user_id=current_user.id, action="JOB_CREATE", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "job_number": job.job_number})
    return job


# ==========================================
#  JOB PARTS
# ==========================================

def _job_part_to_out(row: JobPart, show_prices: bool) -> JobPartOut:
    out = JobPartOut.model_validate(row)
    out.part = part_to_out(row.part, show_prices) if row.part else None
    return out


def _check_job_editor(user: User) -> None:
    if user.role not in (Role.SUPPLIER.value, Role.PROJECT_MANAGER.value):
        raise AuthorizationDenied("Only project managers and suppliers can change a job's parts")


def _job_part(db: Session, job: Job, job_part_id: int) -> JobPart:
    row = db.query(JobPart).filter(JobPart.id == job_part_id, JobPart.job_id == job.id).first()
    if row is None:
        raise NotFoundError("Job part not found")
    return row


def add_job_part(db: Session, job: Job, user: User, payload: JobPartCreate) -> JobPart:
    """Add a part to the job's list; adding a listed part again raises its quantity."""
    _check_job_editor(user)
    if payload.quantity < 1:
        raise ValidationFailed("Quantity must be at least 1")
    if not db.query(Part).filter(Part.id == payload.part_id).first():
        raise NotFoundError("Part not found")

    row = db.query(JobPart).filter(JobPart.job_id == job.id, JobPart.part_id == payload.part_id).first()
    if row:
        row.quantity += payload.quantity
        if payload.notes is not None:
            row.notes = payload.notes
    else:
        row = JobPart(job_id=job.id, part_id=payload.part_id, quantity=payload.quantity,
                      notes=payload.notes, added_by=user.id)
        db.add(row)
    db.commit()
    db.refresh(row)
    return row


@router.get("/{job_id}/parts", response_model=List[JobPartOut])
def list_job_parts(job: Job = Depends(validate_job_access), db: Session = Depends(get_db),
                   current_user: User = Depends(get_current_user)):
    rows = db.query(JobPart).filter(JobPart.job_id == job.id).order_by(JobPart.created_at.asc(), JobPart.id.asc()).all()
    show = price_visible(current_user)
    return [_job_part_to_out(r, show) for r in rows]


@router.post("/{job_id}/parts", response_model=JobPartOut, status_code=status.HTTP_201_CREATED)
def create_job_part(
    payload: JobPartCreate,
    request: Request,
    job: Job = Depends(validate_job_access),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    row = add_job_part(db, job, current_user, payload)
    write_log(db, user_id=current_user.id, action="JOB_PART_ADD", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "part_id": row.part_id, "quantity": row.quantity})
    return _job_part_to_out(row, price_visible(current_user))


@router.put("/{job_id}/parts/{job_part_id}", response_model=JobPartOut)
def update_job_part(
    job_part_id: int,
    payload: JobPartUpdate,
    request: Request,
    job: Job = Depends(validate_job_access),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _check_job_editor(current_user)
    if payload.quantity is not None and payload.quantity < 1:
        raise ValidationFailed("Quantity must be at least 1")
    row = _job_part(db, job, job_part_id)
    if payload.quantity is not None:
        row.quantity = payload.quantity
    if payload.notes is not None:
        row.notes = payload.notes
    db.commit()
    db.refresh(row)
    write_log(db, user_id=current_user.id, action="JOB_PART_UPDATE", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "job_part_id": row.id, "quantity": row.quantity})
    return _job_part_to_out(row, price_visible(current_user))


@router.delete("/{job_id}/parts/{job_part_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_job_part(
    job_part_id: int,
    request: Request,
    job: Job = Depends(validate_job_access),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    _check_job_editor(current_user)
    row = _job_part(db, job, job_part_id)
    db.delete(row)
    db.commit()
    write_log(db, user_id=current_user.id, action="JOB_PART_REMOVE", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "job_part_id": job_part_id})
