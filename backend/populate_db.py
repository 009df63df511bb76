import argparse
import logging
import os
import sys
from pathlib import Path

# Add 'backend' folder to Python path
sys.path.append(os.path.abspath(os.path.dirname(__file__)))

# Database models and setup
from database import SessionLocal, init_db
from models.company import Business, Client
from models.job import Job, JobUser
from models.product import Part
from models.users import User, Role, UserStatus
from utils.hashing import get_password_hash
from utils.parts_import import import_parts, read_price_list

logger = logging.getLogger("populate_db")

DEMO_PASSWORD = "password123"

BUSINESSES = [
    {"name": "Acme Fire Protection", "address": "12 Harbour St, Sydney", "phone": "02 9000 1111",
     "email": "office@acmefire.example", "price_tier": "T1"},
    {"name": "Southern Sprinklers", "address": "8 Beach Rd, Melbourne", "phone": "03 9000 2222",
     "email": "admin@southernsprinklers.example", "price_tier": "T3"},
]

PARTS = [
    {"item_code": "VLV-243", "pipe_size": '2"', "description": "Butterfly Valve - Fire Protection",
     "type": "Valve", "price_t1": 68.50, "price_t2": 65.25, "price_t3": 62.00, "in_stock": 36, "is_popular": True},
    {"item_code": "SPK-108", "pipe_size": '1/2"', "description": "Standard Sprinkler Head - K5.6",
     "type": "Sprinkler", "price_t1": 12.99, "price_t2": 11.75, "price_t3": 10.50, "in_stock": 122, "is_popular": True},
    {"item_code": "FIT-432", "pipe_size": '1"', "description": "Threaded Elbow - 90 deg",
     "type": "Fitting", "price_t1": 3.75, "price_t2": 3.50, "price_t3": 3.25, "in_stock": 245, "is_popular": True},
    {"item_code": "PIP-101", "pipe_size": '1"', "description": "Schedule 40 Steel Pipe - 10ft",
     "type": "Pipe", "price_t1": 28.50, "price_t2": 27.25, "price_t3": 26.00, "in_stock": 85, "is_popular": True},
    {"item_code": "FIT-211", "pipe_size": '3/4"', "description": "Threaded Tee",
     "type": "Fitting", "price_t1": 4.25, "price_t2": 4.00, "price_t3": 3.75, "in_stock": 180, "is_popular": True},
    {"item_code": "SPK-215", "pipe_size": '1/2"', "description": "Pendent Sprinkler Head - Quick Response",
     "type": "Sprinkler", "price_t1": 14.20, "price_t2": 13.10, "price_t3": 12.40, "in_stock": 8},
    {"item_code": "VLV-310", "pipe_size": '4"', "description": "OS&Y Gate Valve - Flanged",
     "type": "Valve", "price_t1": 412.00, "price_t2": 398.00, "price_t3": 385.00, "in_stock": 4},
    {"item_code": "HNG-050", "pipe_size": '1"', "description": "Adjustable Band Hanger",
     "type": "Hanger", "price_t1": 1.90, "price_t2": 1.75, "price_t3": 1.60, "in_stock": 600},
]


def _user(username, role, email, first, last, business=None, approved=False):
    return User(
        username=username,
        email=email,
        password_hash=get_password_hash(DEMO_PASSWORD),
        first_name=first,
        last_name=last,
        role=role,
        business_id=business.id if business else None,
        is_approved=approved,
        status=UserStatus.ACTIVE.value if approved else UserStatus.UNASSIGNED.value,
    )


def seed(parts_csv: Path = None) -> None:
    init_db()
    session = SessionLocal()
    try:
        if session.query(User).filter(User.role == Role.SUPPLIER.value).first():
            logger.info("Database already seeded, skipping")
            return

        businesses = [Business(**b) for b in BUSINESSES]
        session.add_all(businesses)
        session.flush()
        acme = businesses[0]

        supplier = _user("supplier", Role.SUPPLIER.value, "admin@fastfire.example", "Admin", "User", approved=True)
        pm = _user("pm", Role.PROJECT_MANAGER.value, "pm@acmefire.example", "Paula", "Manning", acme, approved=True)
        tradie = _user("tradie", Role.TRADIE.value, "tom@acmefire.example", "Tom", "Fitter", acme, approved=True)
        pending = _user("newbie", Role.TRADIE.value, "nina@example.com", "Nina", "Newman", acme)
        pending.status = UserStatus.PENDING_INVITATION.value
        independent = _user("solo", Role.TRADIE.value, "sam@example.com", "Sam", "Solo")
        session.add_all([supplier, pm, tradie, pending, independent])
        session.flush()

        client = Client(business_id=acme.id, name="Harbourside Developments", contact_name="Jo Builder",
                        email="jo@harbourside.example", phone="02 9000 3333")
        session.add(client)
        session.flush()

        job = Job(name="Office Building Retrofit", job_number="JB-2023-142", business_id=acme.id,
                  client_id=client.id, project_manager_id=pm.id, status="active",
                  location="100 George St, Sydney")
        session.add(job)
        session.flush()
        session.add(JobUser(job_id=job.id, user_id=tradie.id, assigned_by=pm.id))

        session.add_all(Part(**p) for p in PARTS)
        session.commit()
        logger.info("Seeded %s businesses, 5 users, %s parts", len(businesses), len(PARTS))

        if parts_csv:
            result = import_parts(session, read_price_list(parts_csv.read_bytes()))
            logger.info("Imported price list %s: %s created, %s updated", parts_csv, result.created, result.updated)
    finally:
        session.close()


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    parser = argparse.ArgumentParser(description="Seed the fire parts database with demo data")
    parser.add_argument("--parts-csv", type=Path, help="Optional supplier price list to import")
    args = parser.parse_args()
    seed(args.parts_csv)
