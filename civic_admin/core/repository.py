"""
Persistence boundary for the services.

Services only ever talk to a ``Repository``: find by id, find by filter, create,
update and count on named entities, with records exchanged as plain dicts.
``PostgresRepository`` is the production implementation over a single asyncpg
connection (raw SQL, no ORM). Entity and column names are whitelisted before
they are interpolated into SQL; values always travel as bind parameters.
"""

from collections.abc import Iterable, Mapping, Sequence
import json
from typing import Any, Protocol

import asyncpg

from civic_admin.core.exceptions import ConflictError

USERS = "users"
PROGRAMS = "programs"
PROGRAM_ASSIGNMENTS = "program_assignments"
PROGRAM_ROLES = "program_roles"
PROGRAM_ROLE_PERMISSIONS = "program_role_permissions"
PROGRAM_YEARS = "program_years"
GROUPINGS = "groupings"
POSITIONS = "positions"
ELECTIONS = "elections"
ELECTION_VOTES = "election_votes"
DELEGATES = "delegates"

ENTITY_COLUMNS: dict[str, frozenset[str]] = {
    USERS: frozenset({"id", "email", "password_hash", "created_at"}),
    PROGRAMS: frozenset(
        {"id", "name", "year", "config", "status", "created_by", "created_at"}
    ),
    PROGRAM_ASSIGNMENTS: frozenset(
        {"id", "user_id", "program_id", "role", "program_role_id", "created_at"}
    ),
    PROGRAM_ROLES: frozenset(
        {
            "id",
            "program_id",
            "name",
            "description",
            "is_default",
            "is_active",
            "display_order",
            "created_at",
        }
    ),
    PROGRAM_ROLE_PERMISSIONS: frozenset({"id", "role_id", "permission"}),
    PROGRAM_YEARS: frozenset(
        {
            "id",
            "program_id",
            "year",
            "start_date",
            "end_date",
            "status",
            "notes",
            "created_at",
        }
    ),
    GROUPINGS: frozenset(
        {
            "id",
            "program_id",
            "grouping_type_id",
            "parent_grouping_id",
            "name",
            "display_order",
            "notes",
            "status",
            "created_at",
        }
    ),
    POSITIONS: frozenset(
        {
            "id",
            "program_id",
            "name",
            "description",
            "display_order",
            "status",
            "grouping_type_id",
            "is_elected",
            "ballot_grouping_type_id",
            "is_non_partisan",
            "seat_count",
            "requires_declaration",
            "requires_petition",
            "petition_signatures",
            "election_method",
            "created_at",
            "updated_at",
        }
    ),
    ELECTIONS: frozenset(
        {
            "id",
            "program_year_id",
            "position_id",
            "grouping_id",
            "method",
            "start_time",
            "end_time",
            "status",
            "created_at",
            "updated_at",
        }
    ),
    ELECTION_VOTES: frozenset(
        {
            "id",
            "election_id",
            "candidate_delegate_id",
            "voter_delegate_id",
            "vote_rank",
            "created_at",
        }
    ),
    DELEGATES: frozenset(
        {
            "id",
            "program_year_id",
            "first_name",
            "last_name",
            "email",
            "phone",
            "user_id",
            "grouping_id",
            "party_id",
            "status",
            "created_at",
        }
    ),
}

JSON_COLUMNS: dict[str, frozenset[str]] = {PROGRAMS: frozenset({"config"})}

# Entities that carry an updated_at column maintained on every update
TIMESTAMPED_ENTITIES = frozenset({POSITIONS, ELECTIONS})


class Repository(Protocol):
    """Storage operations the services depend on."""

    async def find_by_id(self, entity: str, record_id: Any) -> dict | None: ...

    async def find_first(
        self, entity: str, filters: Mapping[str, Any]
    ) -> dict | None: ...

    async def find_many(
        self,
        entity: str,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]: ...

    async def create(self, entity: str, data: Mapping[str, Any]) -> dict: ...

    async def update(
        self, entity: str, record_id: Any, data: Mapping[str, Any]
    ) -> dict | None: ...

    async def count(
        self, entity: str, filters: Mapping[str, Any] | None = None
    ) -> int: ...

    async def delete_where(self, entity: str, filters: Mapping[str, Any]) -> int: ...


def entity_columns(entity: str) -> frozenset[str]:
    try:
        return ENTITY_COLUMNS[entity]
    except KeyError:
        raise ValueError(f"Unknown entity: {entity}") from None


def check_columns(entity: str, columns: Iterable[str]) -> None:
    """Raise ValueError if any column is not part of the entity."""
    unknown = set(columns) - entity_columns(entity)
    if unknown:
        raise ValueError(f"Unknown column(s) for {entity}: {', '.join(sorted(unknown))}")


def parse_order_by(entity: str, order_by: Sequence[str] | None) -> list[tuple[str, bool]]:
    """Turn ``["display_order", "-id"]`` into ``[("display_order", False), ("id", True)]``."""
    parsed = []
    for item in order_by or ():
        descending = item.startswith("-")
        column = item.lstrip("-")
        check_columns(entity, [column])
        parsed.append((column, descending))
    return parsed


class PostgresRepository:
    """Repository over one asyncpg connection."""

    def __init__(self, conn: asyncpg.Connection):
        self.conn = conn

    async def find_by_id(self, entity: str, record_id: Any) -> dict | None:
        return await self.find_first(entity, {"id": record_id})

    async def find_first(self, entity: str, filters: Mapping[str, Any]) -> dict | None:
        rows = await self.find_many(entity, filters, order_by=["id"], limit=1)
        return rows[0] if rows else None

    async def find_many(
        self,
        entity: str,
        filters: Mapping[str, Any] | None = None,
        order_by: Sequence[str] | None = None,
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict]:
        params: list[Any] = []
        query = f"SELECT * FROM {entity}"  # noqa: S608 - entity is whitelisted
        query += self._where(entity, filters, params)

        ordering = parse_order_by(entity, order_by)
        if ordering:
            query += " ORDER BY " + ", ".join(
                f"{column} {'DESC' if descending else 'ASC'}"
                for column, descending in ordering
            )

        if limit is not None:
            params.append(limit)
            query += f" LIMIT ${len(params)}"

        if offset:
            params.append(offset)
            query += f" OFFSET ${len(params)}"

        rows = await self.conn.fetch(query, *params)
        return [self._row(entity, row) for row in rows]

    async def create(self, entity: str, data: Mapping[str, Any]) -> dict:
        check_columns(entity, data.keys())
        columns = list(data.keys())
        params = [self._encode(entity, column, data[column]) for column in columns]
        placeholders = ", ".join(f"${i}" for i in range(1, len(params) + 1))

        query = f"""
            INSERT INTO {entity} ({", ".join(columns)})
            VALUES ({placeholders})
            RETURNING *
        """
        try:
            row = await self.conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(f"Duplicate {entity} record", {"detail": e.detail}) from e
        return self._row(entity, row)

    async def update(
        self, entity: str, record_id: Any, data: Mapping[str, Any]
    ) -> dict | None:
        check_columns(entity, data.keys())
        if not data:
            return await self.find_by_id(entity, record_id)

        updates: list[str] = []
        params: list[Any] = []
        for column, value in data.items():
            params.append(self._encode(entity, column, value))
            updates.append(f"{column} = ${len(params)}")

        if entity in TIMESTAMPED_ENTITIES and "updated_at" not in data:
            updates.append("updated_at = CURRENT_TIMESTAMP")

        params.append(record_id)
        query = f"""
            UPDATE {entity}
            SET {", ".join(updates)}
            WHERE id = ${len(params)}
            RETURNING *
        """
        try:
            row = await self.conn.fetchrow(query, *params)
        except asyncpg.UniqueViolationError as e:
            raise ConflictError(f"Duplicate {entity} record", {"detail": e.detail}) from e
        return self._row(entity, row) if row else None

    async def count(self, entity: str, filters: Mapping[str, Any] | None = None) -> int:
        params: list[Any] = []
        query = f"SELECT COUNT(*) FROM {entity}" + self._where(entity, filters, params)
        result = await self.conn.fetchval(query, *params)
        return result or 0

    async def delete_where(self, entity: str, filters: Mapping[str, Any]) -> int:
        if not filters:
            raise ValueError("delete_where requires at least one filter")
        params: list[Any] = []
        query = f"DELETE FROM {entity}" + self._where(entity, filters, params)
        result = await self.conn.execute(query, *params)
        return int(result.split()[-1])

    def _where(
        self, entity: str, filters: Mapping[str, Any] | None, params: list[Any]
    ) -> str:
        if not filters:
            entity_columns(entity)
            return ""

        check_columns(entity, filters.keys())
        clauses: list[str] = []
        for column, value in filters.items():
            if value is None:
                clauses.append(f"{column} IS NULL")
            elif isinstance(value, (list, tuple, set, frozenset)):
                params.append(list(value))
                clauses.append(f"{column} = ANY(${len(params)})")
            else:
                params.append(self._encode(entity, column, value))
                clauses.append(f"{column} = ${len(params)}")
        return " WHERE " + " AND ".join(clauses)

    @staticmethod
    def _encode(entity: str, column: str, value: Any) -> Any:
        if column in JSON_COLUMNS.get(entity, ()) and value is not None:
            return json.dumps(value)
        return value

    @staticmethod
    def _row(entity: str, row: asyncpg.Record) -> dict:
        result = dict(row)
        for column in JSON_COLUMNS.get(entity, ()):
            if isinstance(result.get(column), str):
                result[column] = json.loads(result[column])
        return result
