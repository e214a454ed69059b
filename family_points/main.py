"""
FastAPI application entry point for family-points.
Sets up logging, routes, error envelopes, database initialization and the
ledger notification bus.
"""
import logging

from fastapi import FastAPI

from family_points.api import envelope
from family_points.api.routes import auth, behaviors, children, families, redemptions, rewards
from family_points.config import LOG_LEVEL, SEED_DEMO_DATA
from family_points.data.models import Base
from family_points.data.session import SessionLocal, engine
from family_points.domain.seed import seed_data
from family_points.domain.services.events import BalanceChanged, LedgerEventBus


def configure_logging(level: str = LOG_LEVEL) -> None:
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level, logging.INFO))
    if any(getattr(handler, "_family_points", False) for handler in root_logger.handlers):
        return
    console_handler = logging.StreamHandler()
    console_handler.setFormatter(
        logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S")
    )
    console_handler._family_points = True
    root_logger.addHandler(console_handler)


configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(title="Family Points")

app.include_router(auth.router)
app.include_router(families.router)
app.include_router(children.router)
app.include_router(behaviors.router)
app.include_router(rewards.router)
app.include_router(redemptions.router)

envelope.register_exception_handlers(app)


def log_balance_change(change: BalanceChanged) -> None:
    logger.info(
        "Balance of child %s is now %d (%+d, %s %s)",
        change.child_id,
        change.balance,
        change.delta,
        change.source,
        change.event_id,
    )


@app.on_event("startup")
def on_startup() -> None:
    """
    Application startup handler.
    - Creates all database tables if they don't exist
    - Seeds the demo family when FAMILY_POINTS_SEED_DEMO is set
    - Opens the ledger bus and subscribes the balance logger
    """
    Base.metadata.create_all(bind=engine)

    if SEED_DEMO_DATA:
        session = SessionLocal()
        try:
            seed_data(session)
        finally:
            session.close()

    app.state.ledger_bus = LedgerEventBus()
    app.state.balance_log_subscription = app.state.ledger_bus.subscribe(log_balance_change)
    logger.info("Family Points started")


@app.on_event("shutdown")
def on_shutdown() -> None:
    subscription = getattr(app.state, "balance_log_subscription", None)
    if subscription is not None:
        subscription.close()
    bus = getattr(app.state, "ledger_bus", None)
    if bus is not None:
        bus.close()


@app.get("/api/health")
def health():
    return envelope.success({"status": "ok"})
