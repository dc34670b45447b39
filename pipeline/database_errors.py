from datetime import datetime
from functools import partial

from core.csv_utils import to_csv
from core.logging_config import logger
from core.utils import clamp_days
from retrieval.database_errors import fetch_server_errors, probe_server_connection
from retrieval.fanout import fan_out

CSV_HEADER = ["Server", "Time", "Machine", "User", "Resource", "Details", "CallStack", "Arguments"]


def _logged_on(entry):
    return entry.logged_on_local


def query_all_servers(ctx, days=1):
    """
    Run the error query on every configured server in parallel.
    Returns (entries newest first, per-server status).
    """
    days = clamp_days(days)
    servers = list(ctx.error_servers)
    logger.info(f"[DB-ERRORS] Querying {len(servers)} servers for the last {days} day(s)")
    op = partial(_server_op, ctx.factory, ctx.error_database, days)
    result = fan_out(servers, op, timeout=ctx.fanout_timeout, sort_key=_logged_on)
    logger.info(f"[DB-ERRORS] Total: {len(result.rows)} errors from {len(servers)} servers")
    return result.rows, result.statuses


def _server_op(factory, database, days, server):
    return fetch_server_errors(factory, server, database, days)


def query_server(ctx, server, days=1):
    return fetch_server_errors(ctx.factory, server, ctx.error_database, clamp_days(days))


def all_servers_report(ctx, days=1) -> dict:
    entries, statuses = query_all_servers(ctx, days)
    return {
        "totalErrors": len(entries),
        "days": clamp_days(days),
        "servers": list(ctx.error_servers),
        "queriedAt": datetime.now().isoformat(),
        "errors": entries,
        "serverStatuses": statuses,
    }


def server_report(ctx, server, days=1) -> dict:
    entries = query_server(ctx, server, days)
    return {
        "totalErrors": len(entries),
        "days": clamp_days(days),
        "server": server,
        "queriedAt": datetime.now().isoformat(),
        "errors": entries,
    }


def csv_rows(entries):
    for e in entries:
        yield [
            e.server_name,
            e.logged_on_local.isoformat() if e.logged_on_local else None,
            e.machine_id, e.user_id, e.resource_name, e.details, e.call_stack, e.arguments,
        ]


def export_csv(ctx, days=1):
    entries, _ = query_all_servers(ctx, days)
    filename = f"database-errors_{datetime.now():%Y-%m-%d_%H-%M-%S}.csv"
    return filename, to_csv(CSV_HEADER, csv_rows(entries))


def connection_tests(ctx) -> dict:
    return {server: probe_server_connection(ctx.factory, server, ctx.error_database) for server in ctx.error_servers}
