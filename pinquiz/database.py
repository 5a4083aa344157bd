from supabase import acreate_client, AsyncClient
from postgrest.exceptions import APIError
from pinquiz.config import settings
from pinquiz.errors import ConflictError, DuplicateAnswerError, TransientWriteError
from typing import Optional, List
import logging

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"

# Supabase Client Setup
_clients = {}

async def get_supabase_client() -> AsyncClient:
    """Get Supabase client acting with the anon key (subject to row level security)"""
    if "anon" not in _clients:
        _clients["anon"] = await acreate_client(
            settings.supabase_url,
            settings.supabase_anon_key.get_secret_value()
        )
    return _clients["anon"]

async def get_supabase_admin_client() -> AsyncClient:
    """Get Supabase admin client for server side operations"""
    if "admin" not in _clients:
        _clients["admin"] = await acreate_client(
            settings.supabase_url,
            settings.supabase_service_role_key.get_secret_value()
        )
    return _clients["admin"]

async def check_supabase_connection() -> bool:
    """Test Supabase connection"""
    try:
        client = await get_supabase_admin_client()
        await client.table("game_sessions").select("id").limit(1).execute()
        return True
    except Exception as e:
        logger.error(f"Supabase connection test failed: {e}")
        return False


def _translate(table: str, operation: str, error: Exception) -> Exception:
    if isinstance(error, APIError) and error.code == UNIQUE_VIOLATION:
        logger.warning(f"Unique violation on {operation} in {table}: {error.message}")
        if table == "game_answers":
            return DuplicateAnswerError()
        return ConflictError(f"Duplicate {table} record")
    logger.error(f"{operation.capitalize()} error in {table}: {error}")
    return TransientWriteError()


# Database operations using Supabase REST API
class Database:
    """Table operations against the Supabase REST API.

    All filters are equality filters combined with AND. Failures are
    translated into the PinQuiz error taxonomy; nothing is retried here.
    """

    def __init__(self, client: AsyncClient = None):
        self._client = client

    async def client(self) -> AsyncClient:
        if self._client is None:
            self._client = await get_supabase_admin_client()
        return self._client

    async def insert(self, table: str, data: dict) -> Optional[dict]:
        """Insert one row and return it"""
        try:
            client = await self.client()
            result = await client.table(table).insert(data).execute()
            return result.data[0] if result.data else None
        except Exception as e:
            raise _translate(table, "insert", e) from e

    async def select(self, table: str, columns: str = "*", filters: dict = None,
                     limit: int = None, order_by: List[str] = None, desc: bool = False) -> List[dict]:
        """Select rows from table"""
        try:
            client = await self.client()
            query = client.table(table).select(columns)

            if filters:
                for key, value in filters.items():
                    if value is None:
                        query = query.is_(key, "null")
                    else:
                        query = query.eq(key, value)

            for column in order_by or []:
                query = query.order(column, desc=desc)

            if limit:
                query = query.limit(limit)

            result = await query.execute()
            return result.data
        except Exception as e:
            raise _translate(table, "select", e) from e

    async def update(self, table: str, data: dict, filters: dict) -> Optional[dict]:
        """Update rows matching filters; returns the first updated row or None"""
        try:
            client = await self.client()
            query = client.table(table).update(data)

            for key, value in filters.items():
                query = query.eq(key, value)

            result = await query.execute()
            return result.data[0] if result.data else None
        except Exception as e:
            raise _translate(table, "update", e) from e

    async def delete(self, table: str, filters: dict) -> List[dict]:
        """Delete rows matching filters"""
        try:
            client = await self.client()
            query = client.table(table).delete()

            for key, value in filters.items():
                query = query.eq(key, value)

            result = await query.execute()
            return result.data
        except Exception as e:
            raise _translate(table, "delete", e) from e

# Global database instance
db = Database()
