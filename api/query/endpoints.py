from fastapi import APIRouter, Depends

from api.query.dependencies import get_clickhouse_client, get_inject_limit
from api.query.models import QueryRequest, QueryResponse
from api.query.service import run_query

router = APIRouter()


# Plain def: FastAPI runs it on its thread pool, so a slow ClickHouse
# response only ties up one worker thread.
@router.post("/query", response_model=QueryResponse)
def execute_query(
    query_request: QueryRequest,
    client=Depends(get_clickhouse_client),
    inject_limit: bool = Depends(get_inject_limit),
):
    return run_query(client, query_request.sql, inject_limit=inject_limit)
