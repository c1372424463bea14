from fastapi import HTTPException, Request

from warehouse.clickhouse import ClickHouseClient


def get_clickhouse_client(request: Request) -> ClickHouseClient:
    # One client per process, built at startup and shared by every request.
    client = getattr(request.app.state, "client", None)
    if client is None:
        raise HTTPException(status_code=503, detail="ClickHouse client is not initialized")
    return client


def get_inject_limit(request: Request) -> bool:
    settings = getattr(request.app.state, "settings", None)
    return getattr(settings, "inject_limit", True)
