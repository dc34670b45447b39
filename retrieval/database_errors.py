from typing import List

from sqlalchemy import text

from core.logging_config import logger
from core.models import DatabaseErrorEntry
from retrieval.connections import describe_connection, read_uncommitted

ERROR_QUERY = """
SELECT TOP 10000 logged_on_local, machine_id, user_id, resource_name, details, call_stack, arguments
FROM dbo.t_log_message WITH (NOLOCK)
WHERE logged_on_utc >= DATEADD(day, :days_back, GETUTCDATE())
AND resource_name LIKE 'CANT_EXE_DB%'
AND call_stack <> '1: Process Exacta Divert Confirmation:32'
ORDER BY logged_on_utc DESC
"""


def _str_or_none(value):
    return str(value) if value is not None else None


def fetch_server_errors(factory, server, database, days) -> List[DatabaseErrorEntry]:
    """
    CANT_EXE_DB log messages from one server for the last `days` days.
    Connection and query failures propagate so the fan-out can report them.
    """
    logger.debug(f"[DB-ERRORS] Querying {server}/{database} for the last {days} day(s)")
    with factory.connect_host(server, database) as conn:
        result = read_uncommitted(conn).execute(text(ERROR_QUERY), {"days_back": -abs(int(days))})
        rows = result.fetchall()
    entries = [
        DatabaseErrorEntry(
            server_name=server,
            logged_on_local=r[0],
            machine_id=_str_or_none(r[1]),
            user_id=_str_or_none(r[2]),
            resource_name=_str_or_none(r[3]),
            details=_str_or_none(r[4]),
            call_stack=_str_or_none(r[5]),
            arguments=_str_or_none(r[6]),
        )
        for r in rows
    ]
    logger.debug(f"[DB-ERRORS] {server} returned {len(entries)} rows")
    return entries


def probe_server_connection(factory, server, database) -> str:
    try:
        with factory.connect_host(server, database) as conn:
            return describe_connection(conn, server)
    except Exception as e:
        logger.warning(f"[DB-ERRORS] Connection test failed for {server}: {e}")
        return f"Failed to connect to {server}: {e}"
