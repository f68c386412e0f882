from ats.db.base import Base
from ats.db.session import build_engine, init_db

__all__ = ["Base", "build_engine", "init_db"]
