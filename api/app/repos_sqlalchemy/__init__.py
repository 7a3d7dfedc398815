"""SQLAlchemy-backed repository implementations."""

from .menu_repo_sql import MenuRepoSQL
from .orders_repo_sql import OrdersRepoSQL

__all__ = ["MenuRepoSQL", "OrdersRepoSQL"]
