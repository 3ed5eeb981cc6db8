"""
Geofence Repository

Data access layer for the GPS log and the region list - PostgreSQL (asyncpg)
"""

import asyncio
import json
import logging
import re
from typing import Any, Dict, List, Optional

import asyncpg

from core.config.geofence_config import GeofenceConfig
from core.config.infra_config import InfraConfig

from .models import LogEntry, Region, RegionStateUpdate
from .protocols import StoreUnavailableError

logger = logging.getLogger(__name__)

_STORE_ERRORS = (asyncpg.PostgresError, asyncpg.InterfaceError, OSError, asyncio.TimeoutError)
_IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


def _ident(name: str) -> str:
    """Validate a configured schema/table name before it is put into SQL"""
    if not _IDENTIFIER.match(name or ""):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


def _to_json(value: Any) -> Optional[str]:
    return None if value is None else json.dumps(value, default=str)


def _from_json(value: Optional[str]) -> Any:
    return None if value is None else json.loads(value)


class GeofenceDatabase:
    """Owns the asyncpg pool shared by the log and region repositories"""

    def __init__(
        self,
        infra_config: Optional[InfraConfig] = None,
        config: Optional[GeofenceConfig] = None,
    ):
        self.infra_config = infra_config or InfraConfig.from_env()
        self.config = config or GeofenceConfig.from_env()
        self.schema = _ident(self.config.schema)
        self.log_table = _ident(self.config.log_table)
        self.region_table = _ident(self.config.region_table)
        self._pool: Optional[asyncpg.Pool] = None
        self._pool_lock = asyncio.Lock()

    async def initialize(self) -> None:
        """Create the pool and the tables if missing"""
        pool = await self.get_pool()
        try:
            async with pool.acquire() as conn:
                await conn.execute(f"CREATE SCHEMA IF NOT EXISTS {self.schema}")
                await conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {self.schema}.{self.log_table} (
                        log_id BIGSERIAL PRIMARY KEY,
                        recorded_at TIMESTAMPTZ NOT NULL,
                        device_timestamp JSONB,
                        distance JSONB,
                        latitude DOUBLE PRECISION NOT NULL,
                        longitude DOUBLE PRECISION NOT NULL,
                        altitude JSONB
                    )
                """)
                # Operator-edited cells are free-form text; the evaluator validates them
                await conn.execute(f"""
                    CREATE TABLE IF NOT EXISTS {self.schema}.{self.region_table} (
                        region_id TEXT PRIMARY KEY DEFAULT gen_random_uuid()::text,
                        position INTEGER NOT NULL DEFAULT 0,
                        name TEXT,
                        center_lat TEXT,
                        center_lon TEXT,
                        lat_tolerance TEXT,
                        lon_tolerance TEXT,
                        last_notified_at TIMESTAMPTZ,
                        grace_period TEXT,
                        remaining_sends TEXT
                    )
                """)
        except _STORE_ERRORS as e:
            raise StoreUnavailableError(f"Failed to initialize geofence tables: {e}") from e
        logger.info(f"Geofence tables ready in schema '{self.schema}'")

    async def get_pool(self) -> asyncpg.Pool:
        async with self._pool_lock:
            if self._pool is None:
                logger.info(
                    f"Connecting to PostgreSQL at "
                    f"{self.infra_config.postgres_host}:{self.infra_config.postgres_port}"
                )
                try:
                    self._pool = await asyncpg.create_pool(
                        dsn=self.infra_config.postgres_dsn,
                        min_size=self.infra_config.postgres_pool_min_size,
                        max_size=self.infra_config.postgres_pool_max_size,
                    )
                except _STORE_ERRORS as e:
                    raise StoreUnavailableError(f"Cannot connect to PostgreSQL: {e}") from e
            return self._pool

    async def close(self) -> None:
        if self._pool is not None:
            await self._pool.close()
            self._pool = None
            logger.info("Geofence database pool closed")


class GpsLogRepository:
    """GPS log - append only, newest first"""

    def __init__(self, database: GeofenceDatabase):
        self.database = database
        self.table = f"{database.schema}.{database.log_table}"

    async def append_row(self, entry: LogEntry) -> None:
        """Insert the entry as the newest log row"""
        recorded_at, timestamp, distance, latitude, longitude, altitude = entry.to_row()
        query = f"""
            INSERT INTO {self.table} (
                recorded_at, device_timestamp, distance, latitude, longitude, altitude
            ) VALUES ($1, $2::jsonb, $3::jsonb, $4, $5, $6::jsonb)
        """
        try:
            pool = await self.database.get_pool()
            async with pool.acquire() as conn:
                await conn.execute(
                    query,
                    recorded_at,
                    _to_json(timestamp),
                    _to_json(distance),
                    latitude,
                    longitude,
                    _to_json(altitude),
                )
        except _STORE_ERRORS as e:
            logger.error(f"Error appending GPS log row: {e}", exc_info=True)
            raise StoreUnavailableError(f"Failed to append GPS log row: {e}") from e

    async def latest_entry(self) -> Optional[LogEntry]:
        """Newest log row"""
        query = f"""
            SELECT log_id, recorded_at, device_timestamp, distance,
                   latitude, longitude, altitude
            FROM {self.table}
            ORDER BY recorded_at DESC, log_id DESC
            LIMIT 1
        """
        try:
            pool = await self.database.get_pool()
            async with pool.acquire() as conn:
                row = await conn.fetchrow(query)
        except _STORE_ERRORS as e:
            raise StoreUnavailableError(f"Failed to read GPS log: {e}") from e

        return self._deserialize_entry(dict(row)) if row else None

    async def check_connection(self) -> bool:
        try:
            pool = await self.database.get_pool()
            async with pool.acquire() as conn:
                return await conn.fetchval("SELECT 1") == 1
        except (StoreUnavailableError, *_STORE_ERRORS) as e:
            logger.error(f"Database connection check failed: {e}")
            return False

    @staticmethod
    def _deserialize_entry(row: Dict[str, Any]) -> LogEntry:
        return LogEntry(
            log_id=row["log_id"],
            recorded_at=row["recorded_at"],
            timestamp=_from_json(row["device_timestamp"]),
            distance=_from_json(row["distance"]),
            latitude=row["latitude"],
            longitude=row["longitude"],
            altitude=_from_json(row["altitude"]),
        )


class RegionRepository:
    """Region list with mutable notification state"""

    def __init__(self, database: GeofenceDatabase):
        self.database = database
        self.table = f"{database.schema}.{database.region_table}"

    async def list_regions(self) -> List[Region]:
        """All regions in row order"""
        query = f"""
            SELECT region_id, position, name,
                   center_lat, center_lon, lat_tolerance, lon_tolerance,
                   last_notified_at, grace_period, remaining_sends
            FROM {self.table}
            ORDER BY position ASC, region_id ASC
        """
        try:
            pool = await self.database.get_pool()
            async with pool.acquire() as conn:
                rows = await conn.fetch(query)
        except _STORE_ERRORS as e:
            logger.error(f"Error listing regions: {e}", exc_info=True)
            raise StoreUnavailableError(f"Failed to read regions: {e}") from e

        return [Region(**dict(row)) for row in rows]

    async def update_region(self, region_id: str, update: RegionStateUpdate) -> bool:
        """
        Record a firing.

        When expected_remaining_sends is set, the row only changes if its
        stored quota still equals it, so a concurrent firing elsewhere is not
        decremented twice.
        """
        params: List[Any] = [
            update.last_notified_at,
            str(update.remaining_sends),
            region_id,
        ]
        query = f"""
            UPDATE {self.table}
            SET last_notified_at = $1, remaining_sends = $2
            WHERE region_id = $3
        """
        if update.expected_remaining_sends is not None:
            query += " AND remaining_sends IS NOT DISTINCT FROM $4"
            params.append(str(update.expected_remaining_sends))

        try:
            pool = await self.database.get_pool()
            async with pool.acquire() as conn:
                status = await conn.execute(query, *params)
        except _STORE_ERRORS as e:
            logger.error(f"Error updating region {region_id}: {e}", exc_info=True)
            raise StoreUnavailableError(f"Failed to update region {region_id}: {e}") from e

        # asyncpg returns the command tag, e.g. "UPDATE 1"
        return status.split()[-1] != "0"
