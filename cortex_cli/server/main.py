"""Cortex operator endpoints.

Errors are returned as ``{"error": "..."}`` with a non-200 status, the
envelope the CLI's response handling decodes.
"""

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from cortex_cli.config.consts import CORTEX_VERSION
from cortex_cli.logging.audit import generate_request_id, get_audit_logger, request_id_var, setup_logging
from cortex_cli.server.workloads import WorkloadManager, get_workload_manager

RES_DEPLOYMENT_DELETED = "Deletion successful"

_TRUE_VALUES = {"1", "t", "true"}
_FALSE_VALUES = {"0", "f", "false"}


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    get_audit_logger().info("Operator started")
    yield
    get_audit_logger().info("Operator stopped")


app = FastAPI(
    title="Cortex Operator",
    version=CORTEX_VERSION,
    lifespan=lifespan,
)


def respond_error(message: str, status_code: int = 400, headers: dict | None = None) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message}, headers=headers)


def err_app_not_deployed(app_name: str) -> str:
    return f'app "{app_name}" is not deployed'


def get_optional_bool_q_param(request: Request, name: str, default: bool) -> bool:
    """Parse a boolean query param, falling back to default when absent or unparsable."""
    value = request.query_params.get(name)
    if value is None:
        return default
    value = value.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    return default


@app.get("/health")
async def health():
    return {"status": "healthy", "version": CORTEX_VERSION}


@app.post("/delete")
async def delete(request: Request, workloads: WorkloadManager = Depends(get_workload_manager)):
    rid = generate_request_id()
    request_id_var.set(rid)
    logger = get_audit_logger()
    headers = {"X-Request-Id": rid}

    app_name = request.query_params.get("appName", "")
    if not app_name:
        return respond_error("query param required: appName", headers=headers)

    keep_cache = get_optional_bool_q_param(request, "keepCache", False)
    was_deployed = await workloads.delete_app(app_name, keep_cache)

    logger.info(
        "Delete requested",
        extra={"audit_data": {"app_name": app_name, "keep_cache": keep_cache, "was_deployed": was_deployed}},
    )

    if not was_deployed:
        return respond_error(err_app_not_deployed(app_name), headers=headers)

    return JSONResponse(content={"message": RES_DEPLOYMENT_DELETED}, headers=headers)
