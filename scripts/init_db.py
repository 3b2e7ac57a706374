#!/usr/bin/env python3
"""
Initialize the SchoolCanteen database.
Creates tables and optionally seeds a demo school with its staff, a parent and a student.
"""

import sys
import argparse
import logging
from pathlib import Path

# Add parent directory to path to import app modules
sys.path.insert(0, str(Path(__file__).parent.parent))

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger("init_db")

DEMO_DOMAIN = "demo.canteen.local"


def init_schema() -> bool:
    """Create all tables"""
    logger.info("=" * 60)
    logger.info("Initializing database schema...")
    logger.info("=" * 60)

    try:
        from sqlalchemy import inspect
        from domain.models.database import engine, init_database

        init_database()
        tables = inspect(engine).get_table_names()
        logger.info(f"✓ {len(tables)} tables ready: {', '.join(sorted(tables))}")
        return True
    except Exception as e:
        logger.error(f"✗ Failed to initialize schema: {e}", exc_info=True)
        return False


def seed_demo() -> bool:
    """Create a demo school with an admin, a canteen manager, a parent and a student"""
    logger.info("=" * 60)
    logger.info("Seeding demo data...")
    logger.info("=" * 60)

    from domain.enums import UserRole
    from domain.models import AppUser, School, SessionLocal, Student
    from repositories import UserRepository

    db = SessionLocal()
    try:
        if UserRepository(db).get_by_email(f"admin@{DEMO_DOMAIN}"):
            logger.info("✓ Demo data already present, nothing to do")
            return True

        admin = AppUser(
            email=f"admin@{DEMO_DOMAIN}",
            role=UserRole.SCHOOL_ADMIN,
            first_name="Awa",
            last_name="Traore",
        )
        db.add(admin)
        db.flush()

        school = School(
            name="Ecole Primaire Centre",
            address="12 Avenue de la Paix",
            city="Bamako",
            admin_id=admin.user_id,
        )
        db.add(school)
        db.flush()
        admin.school_id = school.school_id

        manager = AppUser(
            email=f"canteen@{DEMO_DOMAIN}",
            role=UserRole.CANTEEN_MANAGER,
            first_name="Moussa",
            last_name="Keita",
            school_id=school.school_id,
        )
        parent = AppUser(
            email=f"parent@{DEMO_DOMAIN}",
            role=UserRole.PARENT,
            first_name="Fatou",
            last_name="Diallo",
            phone="+22370000000",
        )
        super_admin = AppUser(
            email=f"root@{DEMO_DOMAIN}",
            role=UserRole.SUPER_ADMIN,
            first_name="Platform",
            last_name="Admin",
        )
        db.add_all([manager, parent, super_admin])
        db.flush()

        student = Student(
            first_name="Ibrahim",
            last_name="Diallo",
            class_name="CM1",
            school_id=school.school_id,
            parent_id=parent.user_id,
            allergies=["peanuts"],
        )
        db.add(student)
        db.commit()

        for user in (super_admin, admin, manager, parent):
            logger.info(f"✓ {user.role.value:<16} {user.email:<32} X-User-Id: {user.user_id}")
        logger.info(f"✓ Student {student.first_name} {student.last_name} ({student.student_id})")
        return True
    except Exception as e:
        db.rollback()
        logger.error(f"✗ Failed to seed demo data: {e}", exc_info=True)
        return False
    finally:
        db.close()


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Initialize the SchoolCanteen database")
    parser.add_argument(
        "--seed", action="store_true", help="Also create demo school, users and student"
    )
    args = parser.parse_args(argv)

    ok = init_schema()
    if ok and args.seed:
        ok = seed_demo()

    if ok:
        logger.info("✓ Database ready")
        return 0
    logger.error("✗ Database initialization failed")
    return 1


if __name__ == "__main__":
    sys.exit(main())
