"""HTTP endpoints for the public site and the admin panel.

Endpoints are thin: they parse the request, call the runtime's planner or
content service and serialise the result. Application errors propagate to
``portfolio_error_handler``.
"""

from __future__ import annotations

import json
import logging
import time
from typing import TYPE_CHECKING, Any

from starlette.responses import JSONResponse

from portfolio_cms.domain.model import Collection
from portfolio_cms.errors import InvalidPayloadError, PortfolioError
from portfolio_cms.observability.metrics import ERROR_COUNT, REQUEST_COUNT, REQUEST_LATENCY


if TYPE_CHECKING:
    from starlette.requests import Request
    from starlette.responses import Response

    from portfolio_cms.service_layer.bootstrap import PortfolioRuntime


logger = logging.getLogger(__name__)

# SQLite binds 64-bit integers; larger pages are clamped and larger ids rejected.
MAX_PAGE = 1_000_000
MAX_ROW_ID = 2**63 - 1


def _runtime(request: Request) -> PortfolioRuntime:
    return request.app.state.runtime


def _collection(request: Request) -> Collection:
    return Collection.parse(request.path_params["type"])


def _row_id(request: Request) -> int:
    row_id = request.path_params["id"]
    if row_id > MAX_ROW_ID:
        raise InvalidPayloadError(f"Id out of range: {row_id}")
    return row_id


def _page_param(request: Request) -> int:
    raw = request.query_params.get("page", "1")
    try:
        return min(max(int(raw), 1), MAX_PAGE)
    except ValueError:
        return 1


async def _json_body(request: Request) -> Any:
    body = await request.body()
    if not body:
        raise InvalidPayloadError("Request body is empty")
    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise InvalidPayloadError(f"Request body is not valid JSON: {exc.msg}") from exc


async def list_public(request: Request) -> JSONResponse:
    page = await _runtime(request).planner.list_public(
        _collection(request),
        _page_param(request),
        query=request.query_params.get("q"),
        sort=request.query_params.get("sort"),
    )
    return JSONResponse(page.to_dict())


async def list_admin(request: Request) -> JSONResponse:
    page = await _runtime(request).planner.list_admin(_collection(request), _page_param(request))
    return JSONResponse(page.to_dict())


async def get_item(request: Request) -> JSONResponse:
    return await _item_response(request, published_only=True)


async def get_item_admin(request: Request) -> JSONResponse:
    return await _item_response(request, published_only=False)


async def _item_response(request: Request, *, published_only: bool) -> JSONResponse:
    collection = _collection(request)
    row_id = _row_id(request)
    item = await _runtime(request).service.get(collection, row_id, published_only=published_only)
    if item is None:
        return JSONResponse({"error": f"{collection.value} {row_id} not found"}, status_code=404)
    return JSONResponse(item)


async def all_data(request: Request) -> JSONResponse:
    """Published rows of every collection: ``{"projects": [...], "apps": [...], "blog": [...]}``."""
    return JSONResponse(await _runtime(request).service.snapshot(published_only=True))


async def all_data_admin(request: Request) -> JSONResponse:
    return JSONResponse(await _runtime(request).service.snapshot(published_only=False))


async def add_item(request: Request) -> JSONResponse:
    collection = _collection(request)
    row_id = await _runtime(request).service.create(collection, await _json_body(request))
    return JSONResponse({"id": row_id}, status_code=201)


async def edit_item(request: Request) -> JSONResponse:
    collection = _collection(request)
    changes = await _runtime(request).service.update(
        collection,
        _row_id(request),
        await _json_body(request),
    )
    return JSONResponse({"changes": changes})


async def delete_item(request: Request) -> JSONResponse:
    deleted = await _runtime(request).service.delete(_collection(request), _row_id(request))
    return JSONResponse({"deleted": deleted})


async def set_status(request: Request) -> JSONResponse:
    payload = await _json_body(request)
    status = payload.get("status") if isinstance(payload, dict) else None
    changes = await _runtime(request).service.set_status(_collection(request), _row_id(request), status)
    return JSONResponse({"changes": changes})


async def reindex(request: Request) -> JSONResponse:
    rebuilt = await _runtime(request).reindex()
    return JSONResponse({"rebuilt": rebuilt})


async def upload_image(request: Request) -> JSONResponse:
    filename = request.query_params.get("filename") or request.headers.get("x-filename")
    if not filename:
        raise InvalidPayloadError("Missing filename")
    data = await request.body()
    if not data:
        raise InvalidPayloadError("Image body is empty")
    path = await _runtime(request).images.save(filename, data)
    return JSONResponse({"path": path}, status_code=201)


async def list_images(request: Request) -> JSONResponse:
    return JSONResponse({"images": await _runtime(request).images.list()})


async def delete_image(request: Request) -> JSONResponse:
    deleted = await _runtime(request).images.delete(request.path_params["name"])
    return JSONResponse({"deleted": deleted})


async def portfolio_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render application errors as ``{"error": message}`` with the error's status."""
    status_code = getattr(exc, "status_code", 500) if isinstance(exc, PortfolioError) else 500
    ERROR_COUNT.labels(error_type=type(exc).__name__, status=str(status_code)).inc()
    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc, exc_info=exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)
    return JSONResponse({"error": str(exc)}, status_code=status_code)


async def record_request_metrics(request: Request, call_next: Any) -> Response:
    """Count requests and observe latency, labelled by endpoint name."""
    start = time.perf_counter()
    response: Response = await call_next(request)
    endpoint = request.scope.get("endpoint")
    route = getattr(endpoint, "__name__", "unmatched")
    REQUEST_LATENCY.labels(method=request.method, route=route).observe(time.perf_counter() - start)
    REQUEST_COUNT.labels(method=request.method, route=route, status=str(response.status_code)).inc()
    return response
