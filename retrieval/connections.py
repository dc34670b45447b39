import threading
import time
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Dict, Optional

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import URL
from sqlalchemy.exc import DisconnectionError, SQLAlchemyError
from sqlalchemy.pool import NullPool, QueuePool

from core.errors import ConnectionUnavailableError
from core.logging_config import logger

# Named pool settings
POOL_SIZE = 10
POOL_TIMEOUT = 60
POOL_RECYCLE = 30 * 60
IDLE_TIMEOUT = 10 * 60
MIN_IDLE = 1
VALIDATION_QUERY = "SELECT 1"

INTEGRATED_AUTH_MARKERS = ("integratedsecurity=true", "authenticationscheme=javakerberos")


@dataclass(frozen=True)
class ConnectionDescriptor:
    name: str
    host: str
    database: str
    driver: str
    port: Optional[int] = None
    username: str = ""
    password: str = ""
    connect_timeout: int = 60
    query_timeout: Optional[int] = None
    integrated_auth: bool = True
    validation_query: str = VALIDATION_QUERY
    options: Dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def server(self) -> str:
        return f"{self.host},{self.port}" if self.port else self.host


def uses_integrated_auth(url: str) -> bool:
    lowered = (url or "").lower()
    return any(marker in lowered for marker in INTEGRATED_AUTH_MARKERS)


def parse_jdbc_url(url: str):
    """
    Split jdbc:sqlserver://host[:port][;key=value...] into (host, port, options).
    Option keys are kept as written; lookups are case-insensitive.
    """
    if not url:
        raise ValueError("Database URL is empty")
    body = url
    for prefix in ("jdbc:sqlserver://", "sqlserver://"):
        if body.lower().startswith(prefix):
            body = body[len(prefix):]
            break
    parts = [p for p in body.split(";") if p.strip()]
    if not parts:
        raise ValueError(f"Cannot parse database URL: {url}")
    address = parts[0]
    host, port = address, None
    if ":" in address:
        host, raw_port = address.rsplit(":", 1)
        port = int(raw_port)
    options = {}
    for part in parts[1:]:
        if "=" in part:
            k, v = part.split("=", 1)
            options[k.strip()] = v.strip()
    return host, port, options


def _option(options, key, default=None):
    for k, v in options.items():
        if k.lower() == key.lower():
            return v
    return default


def descriptor_from_url(name, url, username="", password="", driver="ODBC Driver 18 for SQL Server",
                        connect_timeout=60, query_timeout=None) -> ConnectionDescriptor:
    host, port, options = parse_jdbc_url(url)
    integrated = uses_integrated_auth(url)
    return ConnectionDescriptor(
        name=name,
        host=host,
        port=port,
        database=_option(options, "databaseName") or _option(options, "database") or "",
        driver=driver,
        # integrated auth authenticates as the OS principal, credentials are never sent
        username="" if integrated else (username or ""),
        password="" if integrated else (password or ""),
        connect_timeout=connect_timeout,
        query_timeout=query_timeout,
        integrated_auth=integrated,
        options=options,
    )


def adhoc_descriptor(host, database, driver, connect_timeout=30, query_timeout=None) -> ConnectionDescriptor:
    """Mode B: a host against a fixed database, always integrated auth."""
    return ConnectionDescriptor(
        name=host,
        host=host,
        database=database,
        driver=driver,
        connect_timeout=connect_timeout,
        query_timeout=query_timeout,
        integrated_auth=True,
        options={"encrypt": "true", "trustServerCertificate": "true", "integratedSecurity": "true"},
    )


def odbc_connect_string(desc: ConnectionDescriptor) -> str:
    encrypt = (_option(desc.options, "encrypt", "true") or "true").lower() == "true"
    trust = (_option(desc.options, "trustServerCertificate", "true") or "true").lower() == "true"
    parts = [
        f"DRIVER={{{desc.driver}}}",
        f"SERVER={desc.server}",
        f"DATABASE={desc.database}",
        f"Encrypt={'yes' if encrypt else 'no'}",
        f"TrustServerCertificate={'yes' if trust else 'no'}",
        f"Connection Timeout={desc.connect_timeout}",
    ]
    if desc.integrated_auth:
        parts.append("Trusted_Connection=yes")
    elif desc.username:
        parts.append(f"UID={desc.username}")
        parts.append(f"PWD={{{desc.password}}}")
    return ";".join(parts) + ";"


def engine_url(desc: ConnectionDescriptor) -> URL:
    return URL.create("mssql+pyodbc", query={"odbc_connect": odbc_connect_string(desc)})


def _attach_listeners(engine, desc: ConnectionDescriptor, idle_timeout=None):
    @event.listens_for(engine, "connect")
    def on_connect(dbapi_conn, connection_record):
        if desc.query_timeout:
            dbapi_conn.timeout = desc.query_timeout
        logger.debug(f"[DB] New DBAPI connection for {desc.name} ({desc.server}/{desc.database})")

    if idle_timeout is None:
        return

    @event.listens_for(engine, "checkin")
    def on_checkin(dbapi_conn, connection_record):
        connection_record.info["checked_in_at"] = time.monotonic()

    @event.listens_for(engine, "checkout")
    def on_checkout(dbapi_conn, connection_record, connection_proxy):
        checked_in_at = connection_record.info.get("checked_in_at")
        if checked_in_at is not None and time.monotonic() - checked_in_at > idle_timeout:
            logger.debug(f"[DB] Discarding idle connection for {desc.name}")
            # the pool retries the checkout with a fresh connection
            raise DisconnectionError("connection idle too long")


class ConnectionFactory:
    """
    Process-wide source of connections.

    Mode A hands out connections from the named pools (primary/secondary).
    Mode B opens a fresh, unpooled connection to a host against a fixed database.
    Engines are created on first use so the ODBC driver is only loaded when a
    query actually runs.
    """

    def __init__(self, descriptors: Dict[str, ConnectionDescriptor], adhoc_driver="ODBC Driver 18 for SQL Server",
                 adhoc_connect_timeout=30, adhoc_query_timeout=None, engine_factory=create_engine):
        self.descriptors = dict(descriptors)
        self.adhoc_driver = adhoc_driver
        self.adhoc_connect_timeout = adhoc_connect_timeout
        self.adhoc_query_timeout = adhoc_query_timeout
        self._engine_factory = engine_factory
        self._engines = {}
        self._adhoc_engines = {}
        self._lock = threading.Lock()

    def names(self):
        return list(self.descriptors)

    def descriptor(self, name) -> ConnectionDescriptor:
        try:
            return self.descriptors[name]
        except KeyError:
            raise ConnectionUnavailableError(f"No database configured under the name '{name}'") from None

    def engine(self, name):
        with self._lock:
            engine = self._engines.get(name)
            if engine is None:
                desc = self.descriptor(name)
                engine = self._engine_factory(
                    engine_url(desc),
                    poolclass=QueuePool,
                    pool_size=POOL_SIZE,
                    max_overflow=0,
                    pool_timeout=POOL_TIMEOUT,
                    pool_recycle=POOL_RECYCLE,
                    pool_pre_ping=True,
                    isolation_level="AUTOCOMMIT",
                )
                _attach_listeners(engine, desc, idle_timeout=IDLE_TIMEOUT)
                self._engines[name] = engine
                logger.info(f"[DB] Created pool '{name}' for {desc.server}/{desc.database}")
            return engine

    def adhoc_engine(self, host, database):
        key = (host, database)
        with self._lock:
            engine = self._adhoc_engines.get(key)
            if engine is None:
                desc = adhoc_descriptor(host, database, self.adhoc_driver,
                                        self.adhoc_connect_timeout, self.adhoc_query_timeout)
                engine = self._engine_factory(engine_url(desc), poolclass=NullPool)
                _attach_listeners(engine, desc)
                self._adhoc_engines[key] = engine
            return engine

    @contextmanager
    def connect(self, name):
        """Mode A: a pooled connection, autocommit on."""
        try:
            conn = self.engine(name).connect()
        except SQLAlchemyError as e:
            raise ConnectionUnavailableError(f"Connection is not available for '{name}': {e}") from e
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def connect_host(self, host, database):
        """Mode B: a fresh connection to host/database, closed on exit."""
        try:
            conn = self.adhoc_engine(host, database).connect()
        except SQLAlchemyError as e:
            raise ConnectionUnavailableError(f"Failed to connect to {host}: {e}") from e
        try:
            yield conn
        finally:
            conn.close()

    def ensure_min_idle(self, name) -> int:
        """
        Top the named pool up to MIN_IDLE open, checked-in connections.

        QueuePool keeps returned connections open until dispose, so connections
        opened here stay parked in the pool. Returns the idle count.
        """
        engine = self.engine(name)
        missing = MIN_IDLE - engine.pool.checkedin()
        opened = []
        try:
            for _ in range(max(0, missing)):
                opened.append(engine.connect())
        finally:
            for conn in opened:
                conn.close()
        return engine.pool.checkedin()

    def warm_up(self):
        """Optimistic test-connect per named pool, leaving MIN_IDLE connections open. Failures are logged, never raised."""
        for name in self.descriptors:
            try:
                with self.connect(name) as conn:
                    conn.execute(text(self.descriptors[name].validation_query))
                idle = self.ensure_min_idle(name)
                logger.info(f"[DB] Pool '{name}' is reachable ({idle} idle)")
            except Exception as e:
                logger.warning(f"[DB] Pool '{name}' failed startup test-connect: {e}")

    def dispose(self):
        with self._lock:
            for engine in list(self._engines.values()) + list(self._adhoc_engines.values()):
                engine.dispose()
            self._engines.clear()
            self._adhoc_engines.clear()


def read_uncommitted(conn):
    return conn.execution_options(isolation_level="READ UNCOMMITTED")


def fetch_dicts(conn, sql, params=None):
    """Run a query and return rows as plain dicts keyed by column label."""
    result = conn.execute(text(sql), params or {})
    return [dict(row) for row in result.mappings()]


def describe_connection(conn, server) -> str:
    dialect = conn.dialect
    version = ".".join(str(p) for p in (dialect.server_version_info or ()))
    dbapi = getattr(dialect, "loaded_dbapi", None)
    driver_version = getattr(dbapi, "version", "") if dbapi is not None else ""
    return f"Connected to {server} - Microsoft SQL Server {version} (Driver: {dialect.driver} {driver_version})"
