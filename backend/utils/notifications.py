# utils/notifications.py
"""
In-app notification side-channel.

``notify`` only stages the row on the session so a state transition can commit
it together with its own changes. ``notify_now`` is the fire-and-forget variant
for paths that are not part of a transaction: it commits on its own and a
failure is logged, never raised.
"""
import logging
from typing import Iterable, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from models.job import Job, JobUser
from models.notification import Notification
from models.users import User, Role
from schemas.notification import JobRef, OrderRef, UserRef, from_related_ref

logger = logging.getLogger(__name__)


def notify(db: Session, user_id: int, type: str, title: str, message: str, related=None) -> Notification:
    related_type, related_id = from_related_ref(related)
    notification = Notification(
        user_id=user_id,
        type=type,
        title=title,
        message=message,
        is_read=False,
        related_type=related_type,
        related_id=related_id,
    )
    db.add(notification)
    return notification


def notify_now(db: Session, user_id: int, type: str, title: str, message: str, related=None) -> Optional[Notification]:
    try:
        notification = notify(db, user_id, type, title, message, related)
        db.commit()
        return notification
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create notification %s for user %s", type, user_id)
        return None


def notify_many(db: Session, user_ids: Iterable[int], type: str, title: str, message: str, related=None) -> None:
    for user_id in user_ids:
        notify(db, user_id, type, title, message, related)


def notify_suppliers_of_registration(db: Session, new_user: User) -> None:
    suppliers = db.query(User).filter(User.role == Role.SUPPLIER.value).all()
    if not suppliers:
        return
    role_label = "Project Manager" if new_user.role == Role.PROJECT_MANAGER.value else "Tradie"
    if new_user.is_approved:
        outcome = "joined their company through an invitation"
    else:
        outcome = "is waiting for approval"
    try:
        notify_many(
            db,
            [s.id for s in suppliers],
            "user_registration",
            "New User Registration",
            f"{new_user.full_name} has registered as a {role_label} and {outcome}.",
            UserRef(user_id=new_user.id),
        )
        db.commit()
    except SQLAlchemyError:
        db.rollback()
        logger.exception("Failed to create registration notifications for user %s", new_user.id)


# --- Job notifications ---

def _assigned_user_ids(db: Session, job_id: int):
    return [row.user_id for row in db.query(JobUser).filter(JobUser.job_id == job_id).all()]


def notify_tradie_assigned(db: Session, job: Job, tradie: User) -> None:
    notify(
        db, tradie.id, "job_assignment_received",
        f"Assigned to New Job: {job.name}",
        f"You've been assigned to job {job.job_number}. You can now search for parts and place orders for this job.",
        JobRef(job_id=job.id),
    )
    if job.project_manager_id:
        notify(
            db, job.project_manager_id, "job_tradie_assigned",
            f"Tradie Assigned to {job.name}",
            f"{tradie.full_name} has been assigned to job {job.job_number}. "
            f"They can now access job details and place orders.",
            JobRef(job_id=job.id),
        )


def notify_job_order_request(db: Session, job: Optional[Job], order_id: int, amount: float, fallback_pm_ids=()) -> None:
    amount_text = f" totaling ${amount:.2f}" if amount else ""
    if job is not None:
        title = f"Parts Order Request for {job.name}"
        message = f"Order #{order_id} has been submitted for job {job.job_number}{amount_text}. Review and approve the order."
        recipients = [job.project_manager_id] if job.project_manager_id else list(fallback_pm_ids)
    else:
        title = "Parts Order Request"
        message = f"Order #{order_id} has been submitted{amount_text}. Review and approve the order."
        recipients = list(fallback_pm_ids)
    notify_many(db, recipients, "job_order_request", title, message, OrderRef(order_id=order_id))


def notify_job_status_change(db: Session, job: Job, old_status: str, new_status: str) -> None:
    title = f"Job Status Updated: {job.name}"
    message = f"Job {job.job_number} status changed from {old_status} to {new_status}."
    if job.project_manager_id:
        notify(db, job.project_manager_id, "job_status_change_pm", title, message, JobRef(job_id=job.id))
    notify_many(db, _assigned_user_ids(db, job.id), "job_status_change_tradie", title, message, JobRef(job_id=job.id))
