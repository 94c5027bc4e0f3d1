"""
=============================================================================
DATABASE GATEWAY
=============================================================================

The only code that talks to PostgreSQL. Five parameterized statements
against one table, behind a thread-safe connection pool.

=============================================================================
SHARING ACROSS WORKERS
=============================================================================

    Worker-0 ──┐                    ┌── conn A ──┐
    Worker-1 ──┼── UserGateway ─────┼── conn B ──┼── PostgreSQL
    Worker-2 ──┘  (ThreadedConnectionPool)  ...  ┘

Every statement borrows a connection for the length of one transaction,
commits (or rolls back) and gives it back. Nothing else is shared between
workers.

ThreadedConnectionPool raises PoolError instead of waiting when every
connection is out, so borrowing goes through a semaphore sized to the pool:
with more workers than connections, the extra callers wait their turn.

=============================================================================
ERROR TRANSLATION
=============================================================================

    psycopg2.errors.UniqueViolation   → Conflict             (409)
    no row for the id                 → NotFound             (404)
    any other psycopg2.Error          → DatabaseUnavailable  (500)

Values are always bound with %s placeholders, never formatted into SQL.

=============================================================================
"""

from contextlib import contextmanager
from typing import Iterator, List
import logging
import threading

import psycopg2
import psycopg2.errors
from psycopg2.pool import ThreadedConnectionPool

from .errors import Conflict, DatabaseUnavailable, NotFound
from .models import User


logger = logging.getLogger(__name__)


CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS users (
        id SERIAL PRIMARY KEY,
        name TEXT NOT NULL,
        email TEXT UNIQUE NOT NULL
    )
"""
INSERT_USER_SQL = "INSERT INTO users (name, email) VALUES (%s, %s) RETURNING id, name, email"
SELECT_USER_SQL = "SELECT id, name, email FROM users WHERE id = %s"
SELECT_USERS_SQL = "SELECT id, name, email FROM users"
UPDATE_USER_SQL = "UPDATE users SET name = %s, email = %s WHERE id = %s RETURNING id, name, email"
DELETE_USER_SQL = "DELETE FROM users WHERE id = %s"


class UserGateway:
    """
    CRUD access to the users table.

        with UserGateway.connect(dsn) as gateway:
            gateway.ensure_schema()
            user = gateway.create("Ada", "ada@example.com")
            gateway.get(user.id)

    The pool is injected so tests can hand in a fake one. max_connections
    must match the pool's maxconn.
    """

    def __init__(self, pool, max_connections: int = 10):
        self._pool = pool
        self._slots = threading.BoundedSemaphore(max_connections)

    @classmethod
    def connect(
        cls,
        dsn: str,
        min_connections: int = 1,
        max_connections: int = 10,
    ) -> "UserGateway":
        """
        Open the connection pool.

        ThreadedConnectionPool opens min_connections eagerly, so an
        unreachable server or bad credentials fail here, at startup.

        Raises:
            DatabaseUnavailable: If the pool cannot be created.
        """
        try:
            pool = ThreadedConnectionPool(
                minconn=min_connections,
                maxconn=max_connections,
                dsn=dsn,
            )
        except psycopg2.Error as e:
            raise DatabaseUnavailable(f"Cannot connect to database: {e}") from e

        logger.info(f"Database pool ready ({min_connections}-{max_connections} connections)")
        return cls(pool, max_connections=max_connections)

    # =========================================================================
    # CONNECTION HANDLING
    # =========================================================================

    @contextmanager
    def _cursor(self) -> Iterator:
        """
        Borrow a connection, yield a cursor, commit on success.

        UniqueViolation is re-raised as is (after rollback) so the caller
        can turn it into a Conflict naming the email. Every other driver
        error becomes DatabaseUnavailable.
        """
        with self._slots:
            try:
                conn = self._pool.getconn()
            except psycopg2.Error as e:
                raise DatabaseUnavailable(f"No database connection available: {e}") from e

            try:
                with conn.cursor() as cur:
                    yield cur
                conn.commit()
            except psycopg2.Error as e:
                self._rollback(conn)
                if isinstance(e, psycopg2.errors.UniqueViolation):
                    raise
                raise DatabaseUnavailable(f"Database statement failed: {e}") from e
            except BaseException:
                self._rollback(conn)
                raise
            finally:
                # A connection the server dropped is useless to the next worker.
                self._pool.putconn(conn, close=bool(conn.closed))

    def _rollback(self, conn) -> None:
        if conn.closed:
            return
        try:
            conn.rollback()
        except psycopg2.Error as e:
            logger.warning(f"Rollback failed: {e}")

    # =========================================================================
    # SCHEMA
    # =========================================================================

    def ensure_schema(self) -> None:
        """Create the users table if it does not exist. Safe to repeat."""
        with self._cursor() as cur:
            cur.execute(CREATE_TABLE_SQL)
        logger.info("users table ready")

    # =========================================================================
    # CRUD
    # =========================================================================

    def create(self, name: str, email: str) -> User:
        """
        Insert a user and return it with its generated id.

        Raises:
            Conflict: If the email is taken.
            DatabaseUnavailable: On any other database failure.
        """
        try:
            with self._cursor() as cur:
                cur.execute(INSERT_USER_SQL, (name, email))
                row = cur.fetchone()
        except psycopg2.errors.UniqueViolation as e:
            raise Conflict(email) from e

        user = User.from_row(row)
        logger.debug(f"Created user {user.id}")
        return user

    def get(self, user_id: int) -> User:
        """
        Raises:
            NotFound: If no row has this id.
        """
        with self._cursor() as cur:
            cur.execute(SELECT_USER_SQL, (user_id,))
            row = cur.fetchone()

        if row is None:
            raise NotFound(user_id)
        return User.from_row(row)

    def list(self) -> List[User]:
        """All users, in whatever order the database returns them."""
        with self._cursor() as cur:
            cur.execute(SELECT_USERS_SQL)
            rows = cur.fetchall()
        return [User.from_row(row) for row in rows]

    def update(self, user_id: int, name: str, email: str) -> User:
        """
        Overwrite name and email; the id never changes.

        Raises:
            NotFound: If no row has this id.
            Conflict: If the new email belongs to another row.
        """
        try:
            with self._cursor() as cur:
                cur.execute(UPDATE_USER_SQL, (name, email, user_id))
                row = cur.fetchone()
        except psycopg2.errors.UniqueViolation as e:
            raise Conflict(email) from e

        if row is None:
            raise NotFound(user_id)
        return User.from_row(row)

    def delete(self, user_id: int) -> None:
        """
        Raises:
            NotFound: If no row has this id (including one deleted already).
        """
        with self._cursor() as cur:
            cur.execute(DELETE_USER_SQL, (user_id,))
            deleted = cur.rowcount

        if deleted == 0:
            raise NotFound(user_id)
        logger.debug(f"Deleted user {user_id}")

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    def close(self) -> None:
        """Close every pooled connection."""
        if not self._pool.closed:
            self._pool.closeall()
            logger.info("Database pool closed")

    def __enter__(self) -> "UserGateway":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
