# backend/routes/pm.py
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, Request, status
from sqlalchemy.orm import Session

from database import get_db
from models.company import Business, Client
from models.invitation import TradieInvitation
from models.job import Job, JobUser
from models.order import Order, OrderStatus
from models.product import Part
from models.users import User, TRADIE_LIKE_ROLES, is_tradie_like
from routes.jobs import add_job_part, create_job_for, job_to_detail
from routes.orders import order_to_out
from routes.parts import part_to_out
from schemas.company import ClientCreate, ClientOut, ClientUpdate, PMDashboardStatsOut, RecentOrderOut
from schemas.invitation import InvitationCreate, InvitationOut
from schemas.job import AssignTradiePayload, JobCreate, JobDetail, JobOut, JobPartCreate, JobPartOut, JobUpdate
from schemas.order import ApprovePayload, ModifyPayload, OrderResponse, RejectPayload
from schemas.product import TierPartOut
from schemas.user import ReasonPayload, TradieOut
from utils.audit import client_ip, write_log
from utils.errors import (
    AuthorizationDenied, ConflictError, NotFoundError, ValidationFailed,
)
from utils.guards import require_pm
from utils.invitations import cancel_invitation, create_invitation, resend_invitation
from utils.membership import MembershipAction, apply_membership_action, state_of
from utils.notifications import notify_job_status_change, notify_tradie_assigned
from utils.order_workflow import approve_order, modify_order, reject_order
from utils.permissions import access_level_of, can_manage_tradie, is_company_member

router = APIRouter(prefix="/pm", tags=["Project Manager"])


def _company_id(pm: User) -> int:
    if not pm.business_id:
        raise ValidationFailed("Project manager must be associated with a company")
    return pm.business_id


def _company_job(db: Session, job_id: int, pm: User) -> Job:
    job = db.query(Job).filter(Job.id == job_id).first()
    if job is None:
        raise NotFoundError("Job not found")
    if job.business_id != _company_id(pm):
        raise AuthorizationDenied("Job belongs to another company")
    return job


def _company_client(db: Session, client_id: int, pm: User) -> Client:
    client = db.query(Client).filter(
        Client.id == client_id, Client.business_id == _company_id(pm)
    ).first()
    if client is None:
        raise NotFoundError("Client not found")
    return client


def _managed_tradie(db: Session, tradie_id: int, pm: User) -> User:
    tradie = db.query(User).filter(User.id == tradie_id).first()
    if tradie is None or not is_tradie_like(tradie.role):
        raise NotFoundError("Tradie not found")
    if not can_manage_tradie(pm, tradie):
        raise AuthorizationDenied("Tradie belongs to another company")
    return tradie


def _invitation_to_out(inv: TradieInvitation, company: Optional[str] = None,
                       pm_name: Optional[str] = None) -> InvitationOut:
    out = InvitationOut.model_validate(inv)
    out.company_name = company
    out.project_manager_name = pm_name
    return out


# ==========================================
#  ORDERS
# ==========================================

@router.get("/orders/pending", response_model=List[OrderResponse])
def pending_orders(db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    orders = db.query(Order).filter(
        Order.business_id == _company_id(current_user),
        Order.status == OrderStatus.PENDING_APPROVAL.value,
    ).order_by(Order.created_at.asc()).all()
    return [order_to_out(o, True) for o in orders]


@router.get("/orders/approved", response_model=List[OrderResponse])
def approved_orders(db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    orders = db.query(Order).filter(
        Order.business_id == _company_id(current_user),
        Order.status.in_([OrderStatus.APPROVED.value, OrderStatus.MODIFIED.value]),
    ).order_by(Order.approval_date.desc()).all()
    return [order_to_out(o, True) for o in orders]


@router.post("/orders/{order_id}/approve", response_model=OrderResponse)
def approve(order_id: int, payload: ApprovePayload, request: Request,
            db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    order = approve_order(db, order_id, current_user, payload.notes)
    write_log(db, user_id=current_user.id, action="ORDER_APPROVE", resource="orders",
              ip=client_ip(request), meta={"order_id": order.id})
    return order_to_out(order, True)


@router.post("/orders/{order_id}/reject", response_model=OrderResponse)
def reject(order_id: int, payload: RejectPayload, request: Request,
           db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    order = reject_order(db, order_id, current_user, payload.reason)
    write_log(db, user_id=current_user.id, action="ORDER_REJECT", resource="orders",
              ip=client_ip(request), meta={"order_id": order.id, "reason": order.rejection_reason})
    return order_to_out(order, True)


@router.post("/orders/{order_id}/modify", response_model=OrderResponse)
def modify(order_id: int, payload: ModifyPayload, request: Request,
           db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    order = modify_order(db, order_id, current_user,
                         [(it.part_id, it.quantity) for it in payload.items], payload.notes)
    write_log(db, user_id=current_user.id, action="ORDER_MODIFY", resource="orders",
              ip=client_ip(request),
              meta={"order_id": order.id, "items": [it.model_dump() for it in payload.items]})
    return order_to_out(order, True)


# ==========================================
#  JOBS
# ==========================================

@router.get("/jobs", response_model=List[JobOut])
def list_jobs(status_filter: Optional[str] = Query(None, alias="status"),
              db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    query = db.query(Job).filter(Job.business_id == _company_id(current_user))
    if status_filter:
        query = query.filter(Job.status == status_filter)
    return query.order_by(Job.created_at.desc()).all()


@router.post("/jobs", response_model=JobOut, status_code=status.HTTP_201_CREATED)
def create_job(payload: JobCreate, request: Request,
               db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    job = create_job_for(db, current_user, payload)
    write_log(db, user_id=current_user.id, action="JOB_CREATE", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "job_number": job.job_number})
    return job


@router.get("/jobs/{job_id}", response_model=JobDetail)
def get_job(job_id: int, db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    return job_to_detail(db, _company_job(db, job_id, current_user))


@router.put("/jobs/{job_id}", response_model=JobOut)
def update_job(job_id: int, payload: JobUpdate, request: Request,
               db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    job = _company_job(db, job_id, current_user)
    changes = payload.model_dump(exclude_unset=True)
    if changes.get("client_id") is not None:
        _company_client(db, changes["client_id"], current_user)

    old_status = job.status
    for field, value in changes.items():
        if field == "status" and not value:
            continue
        setattr(job, field, value)
    if job.status != old_status:
        notify_job_status_change(db, job, old_status, job.status)
    db.commit()
    db.refresh(job)
    write_log(db, user_id=current_user.id, action="JOB_UPDATE", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "fields": sorted(changes)})
    return job


@router.post("/jobs/{job_id}/tradies", response_model=JobDetail, status_code=status.HTTP_201_CREATED)
def assign_tradie(job_id: int, payload: AssignTradiePayload, request: Request,
                  db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    job = _company_job(db, job_id, current_user)
    tradie = _managed_tradie(db, payload.user_id, current_user)
    if not is_company_member(tradie, job.business_id):
        raise ValidationFailed("Only approved tradies can be assigned to jobs")
    if db.query(JobUser).filter(JobUser.job_id == job.id, JobUser.user_id == tradie.id).first():
        raise ConflictError("Tradie is already assigned to this job")

    db.add(JobUser(job_id=job.id, user_id=tradie.id, assigned_by=current_user.id))
    notify_tradie_assigned(db, job, tradie)
    db.commit()
    write_log(db, user_id=current_user.id, action="JOB_ASSIGN", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "tradie_id": tradie.id})
    return job_to_detail(db, job)


@router.delete("/jobs/{job_id}/tradies/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def unassign_tradie(job_id: int, user_id: int, request: Request,
                    db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    job = _company_job(db, job_id, current_user)
    deleted = db.query(JobUser).filter(JobUser.job_id == job.id, JobUser.user_id == user_id).delete()
    if not deleted:
        raise NotFoundError("Tradie is not assigned to this job")
    db.commit()
    write_log(db, user_id=current_user.id, action="JOB_UNASSIGN", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "tradie_id": user_id})


@router.post("/jobs/{job_id}/parts", response_model=JobPartOut, status_code=status.HTTP_201_CREATED)
def add_part_to_job(job_id: int, payload: JobPartCreate, request: Request,
                    db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    job = _company_job(db, job_id, current_user)
    row = add_job_part(db, job, current_user, payload)
    write_log(db, user_id=current_user.id, action="JOB_PART_ADD", resource="jobs",
              ip=client_ip(request), meta={"job_id": job.id, "part_id": row.part_id, "quantity": row.quantity})
    out = JobPartOut.model_validate(row)
    out.part = part_to_out(row.part, True)
    return out


# ==========================================
#  DASHBOARD
# ==========================================

ACTIVE_JOB_STATUSES = {"active", "not_started", "in_progress"}


def _status_key(value: Optional[str]) -> str:
    return (value or "").strip().lower().replace(" ", "_").replace("-", "_")


@router.get("/dashboard/stats", response_model=PMDashboardStatsOut)
def dashboard_stats(db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    company_id = _company_id(current_user)
    jobs = db.query(Job).filter(Job.business_id == company_id).all()
    statuses = [_status_key(j.status) for j in jobs]
    month_start = datetime.utcnow().replace(day=1, hour=0, minute=0, second=0, microsecond=0)

    orders = db.query(Order).filter(Order.business_id == company_id)
    recent = orders.order_by(Order.created_at.desc(), Order.id.desc()).limit(5).all()
    return PMDashboardStatsOut(
        pending_approvals=orders.filter(Order.status == OrderStatus.PENDING_APPROVAL.value).count(),
        active_jobs=sum(1 for s in statuses if s in ACTIVE_JOB_STATUSES),
        completed_jobs=statuses.count("completed"),
        on_hold_jobs=statuses.count("on_hold"),
        total_tradies=db.query(User).filter(
            User.business_id == company_id,
            User.role.in_(TRADIE_LIKE_ROLES),
            User.is_approved.is_(True),
        ).count(),
        jobs_this_month=sum(1 for j in jobs if j.created_at and j.created_at >= month_start),
        total_job_orders=orders.filter(Order.job_id.isnot(None)).count(),
        recent_orders=[
            RecentOrderOut(
                id=o.id, order_number=o.order_number, status=o.status, customer_name=o.customer_name,
                job_name=o.job.name if o.job else None, job_number=o.job.job_number if o.job else None,
                created_at=o.created_at,
            )
            for o in recent
        ],
    )


# ==========================================
#  TRADIES AND INVITATIONS
# ==========================================

@router.get("/tradies", response_model=List[TradieOut])
def list_tradies(db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    tradies = db.query(User).filter(
        User.business_id == _company_id(current_user),
        User.role.in_(TRADIE_LIKE_ROLES),
    ).order_by(User.created_at.desc()).all()
    out = []
    for t in tradies:
        row = TradieOut.model_validate({
            **{f: getattr(t, f) for f in TradieOut.model_fields if hasattr(t, f)},
            "membership_state": state_of(t).value,
            "access_level": access_level_of(t),
        })
        out.append(row)
    return out


@router.post("/tradies/invite", response_model=InvitationOut, status_code=status.HTTP_201_CREATED)
def invite_tradie(payload: InvitationCreate, request: Request, background: BackgroundTasks,
                  db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    invitation = create_invitation(
        db, current_user, payload.email,
        phone=payload.phone,
        personal_message=payload.personal_message,
        background=background,
    )
    write_log(db, user_id=current_user.id, action="INVITE_SEND", resource="invitations",
              ip=client_ip(request), meta={"invitation_id": invitation.id, "email": invitation.email})
    return _invitation_to_out(invitation, pm_name=current_user.full_name)


@router.get("/tradies/invitations", response_model=List[InvitationOut])
def list_invitations(db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    invitations = db.query(TradieInvitation).filter(
        TradieInvitation.project_manager_id == current_user.id
    ).order_by(TradieInvitation.created_at.desc()).all()
    return [_invitation_to_out(inv, pm_name=current_user.full_name) for inv in invitations]


@router.delete("/tradies/invitations/{invitation_id}", response_model=InvitationOut)
def delete_invitation(invitation_id: int, request: Request,
                      db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    invitation = cancel_invitation(db, invitation_id, current_user)
    write_log(db, user_id=current_user.id, action="INVITE_CANCEL", resource="invitations",
              ip=client_ip(request), meta={"invitation_id": invitation.id})
    return _invitation_to_out(invitation, pm_name=current_user.full_name)


@router.post("/tradies/invitations/{invitation_id}/resend", response_model=InvitationOut)
@router.post("/invitations/{invitation_id}/resend", response_model=InvitationOut, include_in_schema=False)
def resend(invitation_id: int, request: Request, background: BackgroundTasks,
           db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    invitation = resend_invitation(db, invitation_id, current_user, background=background)
    write_log(db, user_id=current_user.id, action="INVITE_RESEND", resource="invitations",
              ip=client_ip(request), meta={"invitation_id": invitation.id, "email": invitation.email})
    return _invitation_to_out(invitation, pm_name=current_user.full_name)


def _membership_route(action: MembershipAction, audit_action: str, reason_required: bool = False):
    def handler(tradie_id: int, request: Request, background: BackgroundTasks,
                payload: Optional[ReasonPayload] = None,
                db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
        reason = (payload.reason or "").strip() if payload else ""
        if reason_required and not reason:
            raise ValidationFailed("A reason is required")
        tradie = _managed_tradie(db, tradie_id, current_user)
        result = apply_membership_action(db, tradie, action, current_user,
                                         reason=reason or None, background=background)
        write_log(db, user_id=current_user.id, action=audit_action, resource="tradies",
                  ip=client_ip(request),
                  meta={"tradie_id": tradie.id, "from": result.previous_state.value,
                        "to": result.next_state.value, "reason": reason or None})
        db.refresh(tradie)
        return {
            "message": f"Tradie {result.next_state.value}",
            "tradie_id": tradie.id,
            "membership_state": result.next_state.value,
            "access_level": access_level_of(tradie),
        }
    return handler


router.add_api_route("/tradies/{tradie_id}/approve",
                     _membership_route(MembershipAction.APPROVE, "TRADIE_APPROVE"), methods=["POST"])
router.add_api_route("/tradies/{tradie_id}/reject",
                     _membership_route(MembershipAction.REJECT, "TRADIE_REJECT", reason_required=True),
                     methods=["POST"])
router.add_api_route("/tradies/{tradie_id}/remove",
                     _membership_route(MembershipAction.REMOVE, "TRADIE_REMOVE"), methods=["POST"])


# ==========================================
#  CLIENTS
# ==========================================

@router.get("/clients", response_model=List[ClientOut])
def list_clients(db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    return db.query(Client).filter(Client.business_id == _company_id(current_user)).order_by(Client.name.asc()).all()


@router.post("/clients", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(payload: ClientCreate, request: Request,
                  db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    client = Client(business_id=_company_id(current_user), **payload.model_dump())
    db.add(client)
    db.commit()
    db.refresh(client)
    write_log(db, user_id=current_user.id, action="CLIENT_CREATE", resource="clients",
              ip=client_ip(request), meta={"client_id": client.id})
    return client


@router.put("/clients/{client_id}", response_model=ClientOut)
def update_client(client_id: int, payload: ClientUpdate, request: Request,
                  db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    client = _company_client(db, client_id, current_user)
    changes = payload.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(client, field, value)
    db.commit()
    db.refresh(client)
    write_log(db, user_id=current_user.id, action="CLIENT_UPDATE", resource="clients",
              ip=client_ip(request), meta={"client_id": client.id, "fields": sorted(changes)})
    return client


@router.delete("/clients/{client_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_client(client_id: int, request: Request,
                  db: Session = Depends(get_db), current_user: User = Depends(require_pm)):
    client = _company_client(db, client_id, current_user)
    if db.query(Job).filter(Job.client_id == client.id).first():
        raise ConflictError("Client has jobs and cannot be deleted")
    db.delete(client)
    db.commit()
    write_log(db, user_id=current_user.id, action="CLIENT_DELETE", resource="clients",
              ip=client_ip(request), meta={"client_id": client_id})


# ==========================================
#  PARTS AT THE COMPANY TIER
# ==========================================

@router.get("/parts", response_model=List[TierPartOut])
def tier_parts(type: Optional[str] = Query(None), db: Session = Depends(get_db),
               current_user: User = Depends(require_pm)):
    business = db.query(Business).filter(Business.id == _company_id(current_user)).first()
    tier = business.price_tier if business and business.price_tier else "T3"
    query = db.query(Part)
    if type:
        query = query.filter(Part.type == type)
    return [
        TierPartOut(
            id=p.id, item_code=p.item_code, pipe_size=p.pipe_size, description=p.description,
            type=p.type, in_stock=p.in_stock, is_popular=p.is_popular, image=p.image,
            price=p.price_for_tier(tier), price_tier=tier,
        )
        for p in query.order_by(Part.item_code.asc()).all()
    ]
