#!/usr/bin/env python3
"""
Reminder Service Database Setup Script
======================================

Creates the reminder and subscription tables before the API or the Celery
worker is started.

Usage:
    python scripts/setup_database.py [--check-only]
"""

import sys
import logging
import argparse
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from reminder_service.db.session import engine
from reminder_service.db.base import Base
from reminder_service.reminders import models  # noqa: F401

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(levelname)s - %(message)s')
logger = logging.getLogger(__name__)


def test_connection():
    """Test database connection"""
    logger.info("🔌 Testing database connection...")
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        logger.info("✅ Database connection successful")
        return True
    except SQLAlchemyError as e:
        logger.error(f"❌ Database connection failed: {e}")
        return False


def missing_tables():
    inspector = inspect(engine)
    existing = set(inspector.get_table_names())
    return [t.name for t in Base.metadata.sorted_tables if t.name not in existing]


def main():
    parser = argparse.ArgumentParser(description='Reminder Service Database Setup')
    parser.add_argument('--check-only', action='store_true',
                        help='Only check if tables exist, do not create')
    args = parser.parse_args()

    logger.info(f"🚀 Setting up {engine.url.render_as_string(hide_password=True)}")

    if not test_connection():
        logger.error("❌ Cannot proceed without database connection")
        sys.exit(1)

    missing = missing_tables()
    if args.check_only:
        if missing:
            logger.error(f"❌ Missing tables: {missing}")
            sys.exit(1)
        logger.info("✅ All required tables exist")
        sys.exit(0)

    if missing:
        logger.info(f"🏗️ Creating tables: {', '.join(missing)}")
        try:
            Base.metadata.create_all(bind=engine)
        except SQLAlchemyError as e:
            logger.error(f"❌ Failed to create tables: {e}")
            sys.exit(1)

    if missing_tables():
        logger.error("❌ Setup verification failed")
        sys.exit(1)
    logger.info("🎉 Database setup completed successfully!")
    logger.info("Start the API with:  uvicorn reminder_service.main:app")
    logger.info("Start the worker with:  celery -A reminder_service.reminders.celery_app worker -B")


if __name__ == "__main__":
    main()
