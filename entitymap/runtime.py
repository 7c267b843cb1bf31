# File: entitymap/runtime.py
"""
EntityMap - Connector & Data Access Runtime
============================================
Executes a ``GeneratedUnit`` against a live database.

Two seams:

- ``ConnectionProvider`` hands out one ``ScopedConnection`` per call via a
  context manager that releases it on every exit path.  The SQLAlchemy
  implementation wraps ``Engine.begin()``: commit on success, rollback on
  error, connection returned to the pool either way.
- ``EntityDataAccess`` binds entity values according to each statement's
  binding plan, runs it through one acquired connection and decodes rows
  with the unit's decode plan.

Driver errors are never caught here; they reach the caller unchanged.
Zero affected rows on update/delete is reported, not raised.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import (
    Any,
    Callable,
    ContextManager,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Protocol,
    Sequence,
    Tuple,
    Union,
)

import sqlalchemy
from sqlalchemy.engine import Connection, CursorResult, Engine

from entitymap.decoding import decode_row
from entitymap.models import (
    BindSource,
    CrudOperation,
    GeneratedUnit,
    StatementTemplate,
)

# ---------------------------------------------------------------------------
# Logger
# ---------------------------------------------------------------------------
logger: logging.Logger = logging.getLogger("entitymap.runtime")


# ---------------------------------------------------------------------------
# Connector capability
# ---------------------------------------------------------------------------


class ScopedConnection(Protocol):
    """A connection valid only inside its ``acquire_connection()`` block."""

    def execute(self, sql: str, params: Sequence[Any] = ()) -> Any:
        ...

    def table_exists(self, table_name: str) -> bool:
        ...


class ConnectionProvider(Protocol):
    def acquire_connection(self) -> ContextManager[ScopedConnection]:
        ...


# ---------------------------------------------------------------------------
# Placeholder adaptation
# ---------------------------------------------------------------------------


def adapt_placeholders(sql: str, paramstyle: str) -> str:
    """
    Rewrite ``?`` placeholders for a DB-API paramstyle.

    Question marks inside quoted literals or identifiers are left alone.
    For ``format`` / ``pyformat`` literal ``%`` signs are doubled.
    """
    if paramstyle == "qmark":
        return sql

    out: List[str] = []
    quote: Optional[str] = None
    index: int = 0
    for ch in sql:
        if quote is not None:
            if ch == quote:
                quote = None
            out.append("%%" if ch == "%" and paramstyle in ("format", "pyformat") else ch)
            continue
        if ch in ("'", '"', "`"):
            quote = ch
            out.append(ch)
        elif ch == "?":
            index += 1
            if paramstyle in ("format", "pyformat"):
                out.append("%s")
            elif paramstyle == "numeric":
                out.append(f":{index}")
            elif paramstyle == "named":
                out.append(f":p{index}")
            else:
                raise ValueError(f"Unsupported DB-API paramstyle '{paramstyle}'.")
        elif ch == "%" and paramstyle in ("format", "pyformat"):
            out.append("%%")
        else:
            out.append(ch)
    return "".join(out)


# ---------------------------------------------------------------------------
# SQLAlchemy-backed connector
# ---------------------------------------------------------------------------


class SQLAlchemyScopedConnection:
    """``ScopedConnection`` over a SQLAlchemy ``Connection``."""

    def __init__(self, connection: Connection) -> None:
        self._connection: Connection = connection
        self._paramstyle: str = connection.dialect.paramstyle

    @property
    def connection(self) -> Connection:
        return self._connection

    def execute(self, sql: str, params: Sequence[Any] = ()) -> CursorResult:
        statement: str = adapt_placeholders(sql, self._paramstyle)
        values: Union[Tuple[Any, ...], Dict[str, Any]] = tuple(params)
        if self._paramstyle == "named":
            values = {f"p{i + 1}": v for i, v in enumerate(params)}
        logger.debug("Executing: %s %r", statement, values)
        if not values:
            return self._connection.exec_driver_sql(statement)
        return self._connection.exec_driver_sql(statement, values)

    def table_exists(self, table_name: str) -> bool:
        return sqlalchemy.inspect(self._connection).has_table(table_name)


class SQLAlchemyConnectionProvider:
    """
    Hands out one transaction-scoped connection per ``acquire_connection()``.

    Accepts an ``Engine`` or a database URL.
    """

    def __init__(self, engine: Union[Engine, str], **engine_kwargs: Any) -> None:
        if isinstance(engine, str):
            engine = sqlalchemy.create_engine(engine, **engine_kwargs)
        self._engine: Engine = engine

    @property
    def engine(self) -> Engine:
        return self._engine

    @contextmanager
    def acquire_connection(self) -> Iterator[SQLAlchemyScopedConnection]:
        with self._engine.begin() as connection:
            yield SQLAlchemyScopedConnection(connection)

    def dispose(self) -> None:
        self._engine.dispose()


# ---------------------------------------------------------------------------
# Data access over a generated unit
# ---------------------------------------------------------------------------


def read_value(obj: Any, name: str) -> Any:
    """Field value from a mapping key or an attribute."""
    if isinstance(obj, Mapping):
        return obj[name]
    return getattr(obj, name)


class EntityDataAccess:
    """
    Accessors of one entity, driven by its ``GeneratedUnit``.

    Args:
        unit: Generated artifacts of the entity.
        provider: Source of scoped connections.
        entity_type: Called with the decoded column values, positionally
            and in declaration order, to rebuild an instance.
        current_subject: Instance whose primary key the ``*_self``
            operations bind.
    """

    def __init__(
        self,
        unit: GeneratedUnit,
        provider: ConnectionProvider,
        entity_type: Callable[..., Any],
        current_subject: Any = None,
    ) -> None:
        self._unit: GeneratedUnit = unit
        self._provider: ConnectionProvider = provider
        self._entity_type: Callable[..., Any] = entity_type
        self.current_subject: Any = current_subject

    @property
    def unit(self) -> GeneratedUnit:
        return self._unit

    # -----------------------------------------------------------------
    # Binding
    # -----------------------------------------------------------------

    def _subject_key(self) -> Any:
        if self.current_subject is None:
            raise ValueError(
                f"No current subject set for {self._unit.entity_name}; "
                f"cannot bind '{self._unit.primary_key}'."
            )
        return read_value(self.current_subject, self._unit.primary_key)

    def bind_values(
        self,
        statement: StatementTemplate,
        *,
        obj: Any = None,
        id_value: Any = None,
        args: Sequence[Any] = (),
    ) -> List[Any]:
        """Values for *statement*'s placeholders, in position order."""
        values: List[Any] = []
        for param in statement.bind_order:
            if param.source == BindSource.FIELD:
                values.append(read_value(obj, param.name))
            elif param.source == BindSource.ID:
                values.append(id_value)
            elif param.source == BindSource.SUBJECT:
                values.append(self._subject_key())
            else:
                values.append(args[param.position - 1])
        return values

    def _decode(self, row: Any) -> Any:
        return self._entity_type(*decode_row(self._unit.decode_plan, row))

    def _execute(self, operation: CrudOperation, **bind: Any) -> Tuple[StatementTemplate, List[Any]]:
        statement: StatementTemplate = self._unit.statement(operation)
        return statement, self.bind_values(statement, **bind)

    # -----------------------------------------------------------------
    # Operations
    # -----------------------------------------------------------------

    def create_table(self, block: Optional[Callable[[bool], Any]] = None) -> bool:
        """
        Create the table unless it exists.

        Returns (and passes to *block*) whether it already existed.
        """
        with self._provider.acquire_connection() as connection:
            exists: bool = connection.table_exists(self._unit.table_name)
            if not exists:
                connection.execute(self._unit.ddl)
                logger.info("Created table '%s'.", self._unit.table_name)
        if block is not None:
            block(exists)
        return exists

    def insert(self, obj: Any) -> Any:
        """Insert *obj* without its primary key; returns the new row id if the driver reports one."""
        statement, values = self._execute(CrudOperation.INSERT, obj=obj)
        with self._provider.acquire_connection() as connection:
            result = connection.execute(statement.sql, values)
            return getattr(result, "lastrowid", None)

    def _select(self, operation: CrudOperation, id_value: Any = None) -> Any:
        statement, values = self._execute(operation, id_value=id_value)
        with self._provider.acquire_connection() as connection:
            row = connection.execute(statement.sql, values).fetchone()
            if row is None:
                return None
            return self._decode(row)

    def select_by_id(self, id_value: Any) -> Any:
        return self._select(CrudOperation.SELECT_BY_ID, id_value)

    def select_self(self) -> Any:
        return self._select(CrudOperation.SELECT_SELF)

    def update(self, obj: Any) -> int:
        """Update every column of *obj*; returns the affected-row count."""
        statement, values = self._execute(CrudOperation.UPDATE, obj=obj)
        with self._provider.acquire_connection() as connection:
            affected: int = connection.execute(statement.sql, values).rowcount
        if affected == 0:
            logger.info("Update of %s affected no rows.", self._unit.entity_name)
        return affected

    def _delete(self, operation: CrudOperation, block: Callable[[int], Any], id_value: Any = None) -> None:
        statement, values = self._execute(operation, id_value=id_value)
        with self._provider.acquire_connection() as connection:
            affected: int = connection.execute(statement.sql, values).rowcount
        block(affected)

    def delete_by_id(self, id_value: Any, block: Callable[[int], Any]) -> None:
        """Delete by id; the affected-row count goes to *block*."""
        self._delete(CrudOperation.DELETE_BY_ID, block, id_value)

    def delete_self(self, block: Callable[[int], Any]) -> None:
        self._delete(CrudOperation.DELETE_SELF, block)

    def run_query(self, name: str, *args: Any, block: Callable[[Any], Any]) -> Any:
        """
        Run a raw query with *args* bound positionally.

        *block* receives the driver result while the connection is still
        held; its return value is returned.
        """
        statement: StatementTemplate = self._unit.query(name)
        if len(args) != statement.parameter_count:
            raise TypeError(
                f"Query '{name}' takes {statement.parameter_count} argument(s), "
                f"{len(args)} given."
            )
        values: List[Any] = self.bind_values(statement, args=args)
        with self._provider.acquire_connection() as connection:
            return block(connection.execute(statement.sql, values))


__all__: List[str] = [
    "ConnectionProvider",
    "EntityDataAccess",
    "SQLAlchemyConnectionProvider",
    "SQLAlchemyScopedConnection",
    "ScopedConnection",
    "adapt_placeholders",
    "read_value",
]
