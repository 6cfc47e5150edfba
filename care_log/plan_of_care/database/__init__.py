from .connection import get_connection, init_database, transaction
from .daily_log_repository import DailyLogRepository
from .poc_repository import PocRepository
from .task_log_repository import TaskLogRepository

__all__ = [
    "get_connection",
    "init_database",
    "transaction",
    "DailyLogRepository",
    "PocRepository",
    "TaskLogRepository",
]
