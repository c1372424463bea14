"""Turns one SQL string into a bounded QueryResponse."""

import logging
import re

from api.query.models import QueryResponse
from warehouse.errors import DatabaseError
from warehouse.tsv import decode

LOG = logging.getLogger(__name__)

# Hard cap on rows sent to the browser, independent of any LIMIT in the SQL.
MAX_ROWS = 2000
DEFAULT_LIMIT_CLAUSE = f" LIMIT {MAX_ROWS}"

# Statements that accept a LIMIT clause at the end.
LIMITABLE_RE = re.compile(r"^(select|with|show\s+(tables|databases))\b")
# Clauses that must stay last, so a LIMIT cannot be appended after them.
TRAILING_CLAUSE_RE = re.compile(r"\b(settings|format|into\s+outfile)\b")


def apply_default_limit(sql: str) -> str:
    """
    Append ``LIMIT 2000`` to a plain SELECT/WITH or SHOW TABLES/DATABASES query.

    Anything else (DESCRIBE, SHOW CREATE, EXPLAIN, a query ending in SETTINGS
    or FORMAT) is returned trimmed but otherwise as written. The "limit"
    check is a case-insensitive substring match, so a column named
    ``speed_limit`` also suppresses the clause. The row cap in ``run_query``
    holds either way.
    """
    sql = sql.strip()
    lowered = sql.lower()
    if "limit" in lowered:
        return sql
    if not LIMITABLE_RE.match(lowered) or TRAILING_CLAUSE_RE.search(lowered):
        return sql
    return sql.rstrip(";").rstrip() + DEFAULT_LIMIT_CLAUSE


def run_query(client, sql: str, *, inject_limit: bool = True) -> QueryResponse:
    """
    Run ``sql`` and wrap the outcome in the query envelope.

    Database failures of any kind come back as ``error`` with empty columns
    and rows; they are never raised to the caller.
    """
    if not sql.strip():
        return QueryResponse(error="empty query")

    statement = apply_default_limit(sql) if inject_limit else sql

    try:
        with client.execute(statement) as stream:
            columns, rows = decode(stream.lines(), MAX_ROWS)
    except DatabaseError as e:
        LOG.warning("Query failed: %s", e)
        return QueryResponse(error=str(e))

    return QueryResponse(columns=columns, rows=rows, error=None)
