"""
Application startup validation and initialization.

This module performs startup checks and database initialization so the
dispatch service fails fast when it is misconfigured.
"""

import logging
import sys
from typing import List, Tuple

import sqlalchemy as sa
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from core.config import settings, validate_production_config
from core.database import engine, Base

logger = logging.getLogger(__name__)

REQUIRED_TABLES = [
    "orders",
    "order_items",
    "time_slots",
    "business_hours",
    "menu_items",
]


def configure_logging():
    """Configure root logging from settings"""
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


class StartupValidator:
    """Validates application startup requirements"""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def check_environment_config(self) -> bool:
        try:
            validate_production_config()
        except ValueError as e:
            self.errors.append(f"Configuration validation failed: {str(e)}")
            return False

        if settings.is_development and "dev-secret" in settings.jwt_secret_key:
            self.warnings.append("Using development JWT_SECRET_KEY - change for production")
        return True

    def check_database_connection(self) -> bool:
        """Check database connectivity"""
        try:
            with engine.connect() as conn:
                conn.execute(text("SELECT 1")).fetchone()
            logger.info("Database connection successful")
            return True
        except SQLAlchemyError as e:
            self.errors.append(f"Database connection failed: {str(e)}")
            return False

    def check_redis_config(self) -> bool:
        if not settings.redis_enabled:
            self.warnings.append(
                "REDIS_URL not configured - staff events are not shared between instances"
            )
        return True

    def check_required_tables(self) -> bool:
        """Check that the dispatch tables exist"""
        try:
            existing_tables = sa.inspect(engine).get_table_names()
        except SQLAlchemyError as e:
            self.warnings.append(f"Could not check database tables: {str(e)}")
            return True

        missing_tables = [t for t in REQUIRED_TABLES if t not in existing_tables]
        if missing_tables:
            self.errors.append(f"Missing database tables: {', '.join(missing_tables)}")
            return False
        return True

    def validate_all(self) -> Tuple[bool, List[str], List[str]]:
        """Run all validation checks"""
        checks = [
            ("Environment Configuration", self.check_environment_config),
            ("Database Connection", self.check_database_connection),
            ("Redis Configuration", self.check_redis_config),
            ("Database Tables", self.check_required_tables),
        ]

        all_passed = True
        for check_name, check_func in checks:
            logger.info(f"Running check: {check_name}")
            if not check_func():
                all_passed = False

        return all_passed, self.errors, self.warnings


def init_db():
    """Create any missing tables"""
    Base.metadata.create_all(bind=engine)


def run_startup_checks():
    """Run all startup validation checks"""
    logger.info(f"Starting dispatch service ({settings.environment})")

    validator = StartupValidator()
    passed, errors, warnings = validator.validate_all()

    for warning in warnings:
        logger.warning(f"Startup warning: {warning}")
    for error in errors:
        logger.error(f"Startup error: {error}")

    if not passed and settings.is_production:
        logger.error("Cannot start in production with errors!")
        sys.exit(1)
    elif not passed:
        logger.warning("Starting in development mode despite errors")
    else:
        logger.info("All startup checks passed")

    return passed, warnings
