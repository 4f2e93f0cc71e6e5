#!/usr/bin/env python3
"""
Community Portal Integration Manager - Main Application Entry Point.

============================================================
SINGLE ENTRYPOINT
============================================================
Wires the record store, analytics, service registry and the
integration manager into one runtime, then runs one command:

- --init-db       create missing tables
- --initialize    automated checks, service health, maintenance
- --check         probe every registered service
- --dashboard     print the system health dashboard
- --maintenance   run the maintenance tasks once
- --serve         run the admin HTTP API

============================================================
USAGE
============================================================
    python app.py --init-db --check
    python app.py --maintenance
    python app.py --serve --port 8000

Environment-based configuration:
    DATABASE_URL=postgresql://... LOG_LEVEL=DEBUG python app.py --dashboard

============================================================
"""

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import uvicorn
from sqlalchemy.ext.asyncio import AsyncEngine

from admin_api.main import create_app
from analytics.tracker import AnalyticsTracker
from core.clock import ClockFactory
from core.error_reporter import ErrorReporter, set_error_reporter
from integration.config import IntegrationConfig, get_config
from integration.manager import IntegrationManager
from services.registry import build_default_registry
from storage.database import (
    DatabaseConfig,
    create_all_tables,
    create_engine_from_config,
    dispose_engine,
    verify_database_connection,
)
from storage.gateway import SqlAlchemyRecordStore


logger = logging.getLogger(__name__)


# ============================================================
# CLI ARGUMENT PARSER
# ============================================================

def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="portal-integration",
        description="Community portal integration manager",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s --init-db --initialize     # First start
  %(prog)s --check                    # Service health only
  %(prog)s --serve --port 8080        # Admin API
        """
    )

    # --------------------------------------------------------
    # Commands
    # --------------------------------------------------------
    commands = parser.add_argument_group("Commands")
    commands.add_argument("--init-db", action="store_true", help="Create missing database tables")
    commands.add_argument("--initialize", action="store_true", help="Run the full startup sequence")
    commands.add_argument("--check", action="store_true", help="Check all registered services")
    commands.add_argument("--dashboard", action="store_true", help="Print the system health dashboard")
    commands.add_argument("--maintenance", action="store_true", help="Run maintenance tasks once")
    commands.add_argument("--serve", action="store_true", help="Run the admin HTTP API")

    # --------------------------------------------------------
    # Options
    # --------------------------------------------------------
    options = parser.add_argument_group("Options")
    options.add_argument(
        "--config",
        type=str,
        metavar="PATH",
        help="YAML integration config (default: environment)",
    )
    options.add_argument(
        "--log-level",
        type=str,
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("LOG_LEVEL", "INFO").upper(),
        help="Logging level (default: $LOG_LEVEL or INFO)",
    )
    options.add_argument("--host", type=str, default="0.0.0.0", help="API host (default: 0.0.0.0)")
    options.add_argument("--port", type=int, default=8000, help="API port (default: 8000)")

    return parser


def validate_args(args: argparse.Namespace) -> List[str]:
    errors = []
    if not any([args.init_db, args.initialize, args.check, args.dashboard, args.maintenance, args.serve]):
        errors.append("No command given (use --check, --dashboard, --maintenance, --initialize, --init-db or --serve)")
    if args.config and not Path(args.config).is_file():
        errors.append(f"Config file not found: {args.config}")
    return errors


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)-8s %(name)s: %(message)s",
    )


# ============================================================
# RUNTIME WIRING
# ============================================================

@dataclass
class Runtime:
    engine: AsyncEngine
    manager: IntegrationManager


def build_runtime(config: IntegrationConfig, db_config: Optional[DatabaseConfig] = None) -> Runtime:
    """Wire store, analytics, registry and manager."""
    clock = ClockFactory.get_clock()
    engine = create_engine_from_config(db_config)
    store = SqlAlchemyRecordStore(engine)
    analytics = AnalyticsTracker(store, clock)

    reporter = ErrorReporter(max_queue_size=config.error_queue_size, clock=clock)
    set_error_reporter(reporter)

    registry = build_default_registry(store, analytics, clock)
    manager = IntegrationManager(
        store,
        registry,
        analytics,
        config=config,
        clock=clock,
        error_reporter=reporter,
    )
    return Runtime(engine=engine, manager=manager)


def _print_json(data) -> None:
    print(json.dumps(data, indent=2, default=str))


async def run_application(args: argparse.Namespace) -> int:
    """
    Run the requested commands in a fixed order.

    Returns:
        Exit code
    """
    config = IntegrationConfig.from_yaml(Path(args.config)) if args.config else get_config()
    runtime = build_runtime(config)
    manager = runtime.manager
    exit_code = 0

    try:
        if not await verify_database_connection(runtime.engine):
            logger.error("Database is not reachable")
            return 1

        if args.init_db:
            await create_all_tables(runtime.engine)

        if args.initialize:
            report = await manager.initialize_all_services()
            _print_json(report.to_dict())

        if args.check:
            statuses = await manager.check_all_api_services()
            _print_json([s.to_dict() for s in statuses])
            if any(s.status.value == "outage" for s in statuses):
                exit_code = 2

        if args.dashboard:
            dashboard = await manager.get_system_health_dashboard()
            _print_json(dashboard.to_dict())

        if args.maintenance:
            report = await manager.run_maintenance_tasks()
            _print_json(report.to_dict())
            if report.tasks_failed:
                exit_code = 2

        if args.serve:
            logger.info(f"Starting admin API on {args.host}:{args.port}")
            server = uvicorn.Server(uvicorn.Config(
                create_app(manager),
                host=args.host,
                port=args.port,
                log_level=args.log_level.lower(),
            ))
            await server.serve()

        return exit_code

    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        return 130
    except Exception as e:
        logger.error(f"Fatal error: {e}", exc_info=True)
        return 1
    finally:
        await manager.close()
        await dispose_engine(runtime.engine)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args(argv)

    errors = validate_args(args)
    if errors:
        for error in errors:
            print(f"Error: {error}", file=sys.stderr)
        return 1

    setup_logging(args.log_level)
    return asyncio.run(run_application(args))


# ============================================================
# ENTRY POINT
# ============================================================

if __name__ == "__main__":
    sys.exit(main())
