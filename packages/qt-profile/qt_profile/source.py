"""Operator-statistics sources: Snowflake and JSON files.

Rows are fully materialized here before the engine runs; the engine itself
does no I/O.
"""

from __future__ import annotations

import json
import logging
from pathlib import Path
from typing import Any, Optional

from .config import Settings

logger = logging.getLogger(__name__)

OPERATOR_STATS_SQL = "SELECT * FROM TABLE(GET_QUERY_OPERATOR_STATS(%s))"


class SnowflakeOperatorStatsSource:
    """Fetch GET_QUERY_OPERATOR_STATS rows for a query id.

    Supports username/password authentication. The connector is imported on
    first connect so file-based analysis works without it installed.
    """

    def __init__(
        self,
        account: str,
        user: str,
        password: str,
        warehouse: str,
        database: str,
        schema: str = "PUBLIC",
        role: str = "",
    ):
        self.account = account
        self.user = user
        self.password = password
        self.warehouse = warehouse
        self.database = database
        self.schema = schema
        self.role = role
        self.connection = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "SnowflakeOperatorStatsSource":
        return cls(
            account=settings.snowflake_account,
            user=settings.snowflake_user,
            password=settings.snowflake_password,
            warehouse=settings.snowflake_warehouse,
            database=settings.snowflake_database,
            schema=settings.snowflake_schema,
            role=settings.snowflake_role,
        )

    def connect(self) -> None:
        """Establish connection to Snowflake."""
        try:
            import snowflake.connector
        except ImportError as e:
            raise ImportError(
                "snowflake-connector-python is required for Snowflake support. "
                "Install it with: pip install snowflake-connector-python"
            ) from e

        conn_params = {
            "account": self.account,
            "user": self.user,
            "password": self.password,
            "warehouse": self.warehouse,
            "database": self.database,
            "schema": self.schema,
        }
        if self.role:
            conn_params["role"] = self.role

        logger.info(f"Connecting to Snowflake as {self.user} on {self.account}")
        try:
            self.connection = snowflake.connector.connect(**conn_params)
        except Exception as e:
            logger.error(f"Failed to connect to Snowflake: {e}")
            raise
        logger.info(f"Connected to Snowflake {self.account}.{self.database}.{self.schema}")

    def close(self) -> None:
        """Close the Snowflake connection."""
        if self.connection:
            self.connection.close()
            self.connection = None
            logger.info("Snowflake connection closed")

    def fetch_operator_rows(self, query_id: str) -> list[dict[str, Any]]:
        """Run GET_QUERY_OPERATOR_STATS and return rows with lower-cased keys."""
        if not self.connection:
            self.connect()

        cursor = self.connection.cursor()
        try:
            cursor.execute(OPERATOR_STATS_SQL, (query_id,))
            columns = [desc[0].lower() for desc in cursor.description] if cursor.description else []
            rows = [dict(zip(columns, row)) for row in cursor.fetchall()]
        except Exception as e:
            logger.error(f"Snowflake operator stats error for {query_id}: {e}")
            raise
        finally:
            cursor.close()

        logger.info(f"Fetched {len(rows)} operator rows for {query_id}")
        return rows

    def __enter__(self):
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()


class FileOperatorStatsSource:
    """Serve rows previously exported to a JSON file."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def fetch_operator_rows(self, query_id: str) -> list[dict[str, Any]]:
        return load_operator_rows(self.path)


def load_operator_rows(path: str | Path) -> list[dict[str, Any]]:
    """Load operator rows from JSON: a list of rows or ``{"rows": [...]}``."""
    data: Any = json.loads(Path(path).read_text(encoding="utf-8"))
    rows: Optional[Any] = data.get("rows") if isinstance(data, dict) else data
    if not isinstance(rows, list):
        raise ValueError(f"{path}: expected a JSON list of operator rows")
    return rows
