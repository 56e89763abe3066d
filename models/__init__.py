from models.base import Base, engine, async_session, init_db
from models.checkpoint import ProcessingState
from models.policy import InsurancePolicy

__all__ = [
    "Base",
    "engine",
    "async_session",
    "init_db",
    "ProcessingState",
    "InsurancePolicy",
]
