"""
Geomess API
FastAPI application for posting and reading short-lived messages near a location.

Clients of the nginx/Lua backend need three changes:
- POST routes take JSON bodies, not form-encoded arguments
- the message list comes back under "messages" instead of "list"
- failures carry a status code (422 invalid input, 403 not registered,
  503 system error) instead of always 200; the body is still the
  {"result": false, "msg": ...} envelope
"""
import logging
import time
from typing import Annotated

from fastapi import Depends, FastAPI, Query, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from redis import Redis
from redis.exceptions import RedisError

from src.geomess import config
from src.geomess import metrics
from src.geomess.errors import GeomessError, NotRegisteredError
from src.geomess.geohash import MERCATOR_BOX, HIGHRES_STEPS, LOWRES_STEPS, encode
from src.geomess.logging_config import setup_logging
from src.geomess.messages import load_messages, save_message
from src.geomess.models import (
    ApiResult,
    MessageOut,
    MessagesQuery,
    PostMessageRequest,
    RegisterRequest,
)
from src.geomess.projection import project
from src.geomess.redis_client import get_redis_client
from src.geomess.registry import hash_token, lookup_user, register_user, user_exists

setup_logging()
logger = logging.getLogger(__name__)

SYSTEM_ERROR_MSG = "system error, please try later"
NOT_REGISTERED_MSG = "you are not registered"
INVALID_INPUT_MSG = "invalid input received"


def get_store():
    """
    One Redis connection per request, released when the response is sent.
    """
    r = get_redis_client()
    try:
        yield r
    finally:
        r.close()


Store = Annotated[Redis, Depends(get_store)]


def fail(status_code: int, msg: str, err: str = None) -> JSONResponse:
    """Build a failed result envelope; err is only exposed in debug mode."""
    result = ApiResult(result=False, msg=msg, err=err if config.DEBUG else None)
    return JSONResponse(status_code=status_code, content=result.model_dump(exclude_none=True))


def validation_message(error: dict) -> str:
    """
    Turn the first pydantic error of a request into a client message.

    Missing fields read "<field> is expected", our own checks keep their
    message and anything else (wrong types, unparsable body) is reported
    as invalid input.
    """
    loc = error.get("loc", ())
    field = loc[-1] if loc else None

    if error.get("type") == "missing" and field not in (None, "body", "query"):
        return f"{field} is expected"
    if error.get("type") == "value_error":
        return str(error["msg"]).removeprefix("Value error, ")
    return INVALID_INPUT_MSG


def locate(longitude: float, latitude: float, steps: int) -> int:
    """Cell id of a WGS84 position at the given resolution."""
    x, y = project(longitude, latitude)
    return encode(MERCATOR_BOX, y, x, steps)


# Initialize FastAPI application
app = FastAPI(
    title="Geomess",
    description="Ephemeral location-based messages using an integer geohash index on Redis",
    version="1.0.0"
)


@app.exception_handler(RequestValidationError)
def handle_validation_error(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    msg = validation_message(errors[0]) if errors else INVALID_INPUT_MSG
    metrics.api_requests_total.labels(endpoint=request.url.path, status="invalid").inc()
    return fail(422, msg)


@app.exception_handler(NotRegisteredError)
def handle_not_registered(request: Request, exc: NotRegisteredError):
    metrics.api_requests_total.labels(endpoint=request.url.path, status="not_registered").inc()
    return fail(403, NOT_REGISTERED_MSG)


@app.exception_handler(GeomessError)
def handle_geomess_error(request: Request, exc: GeomessError):
    logger.exception("system error on %s", request.url.path)
    metrics.api_requests_total.labels(endpoint=request.url.path, status="error").inc()
    return fail(503, SYSTEM_ERROR_MSG, str(exc))


@app.exception_handler(RedisError)
def handle_redis_error(request: Request, exc: RedisError):
    logger.exception("redis error on %s", request.url.path)
    metrics.api_requests_total.labels(endpoint=request.url.path, status="error").inc()
    metrics.redis_operations_total.labels(operation="request", status="error").inc()
    return fail(503, SYSTEM_ERROR_MSG, f"{type(exc).__name__}: {exc}")


@app.get("/metrics")
def get_metrics():
    """
    Prometheus metrics endpoint.

    Returns:
        Response: Prometheus-formatted metrics
    """
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health():
    """
    Health check endpoint.

    Returns:
        dict: API status and Redis connection status
    """
    redis_client = get_redis_client()
    try:
        redis_client.ping()
        redis_status = "connected"
        metrics.redis_operations_total.labels(operation="ping", status="success").inc()
    except RedisError:
        redis_status = "disconnected"
        metrics.redis_operations_total.labels(operation="ping", status="error").inc()
    finally:
        redis_client.close()

    return {"status": "healthy", "redis": redis_status}


@app.get("/api/v1", response_model=ApiResult, response_model_exclude_none=True)
def index():
    """Nothing lives at the API root."""
    return ApiResult(result=False, msg="invalid input")


@app.post("/api/v1/register", response_model=ApiResult, response_model_exclude_none=True)
def register(body: RegisterRequest, r: Store):
    """
    Register a device, or rename an already registered one.

    Process:
    1. Project the position and encode it at high resolution
    2. Hash the device token
    3. Reuse the device's user id or allocate a new one, store the name

    Args:
        body: RegisterRequest with uuid, name, longitude, latitude

    Returns:
        ApiResult with the user id
    """
    start_time = time.time()

    # Positions are not stored for users, but must land in the grid
    locate(body.longitude, body.latitude, HIGHRES_STEPS)

    token_hash = hash_token(body.uuid)
    user_id = register_user(r, token_hash, body.name)

    metrics.api_requests_total.labels(endpoint="register", status="success").inc()
    metrics.request_duration_seconds.labels(endpoint="register").observe(time.time() - start_time)

    return ApiResult(result=True, user_id=user_id)


@app.post("/api/v1/messages", response_model=ApiResult, response_model_exclude_none=True)
def post_message(body: PostMessageRequest, r: Store):
    """
    Post a message at the device's current position.

    Process:
    1. Look up the device (must be registered)
    2. Encode the position at high resolution
    3. Store the body with its TTL, then index it by cell id

    Args:
        body: PostMessageRequest with uuid, longitude, latitude, message

    Returns:
        ApiResult with the message id

    Raises:
        NotRegisteredError: If the device never registered
    """
    start_time = time.time()

    user = lookup_user(r, hash_token(body.uuid))
    if user is None:
        raise NotRegisteredError()

    highres_cell = locate(body.longitude, body.latitude, HIGHRES_STEPS)
    message_id = save_message(r, user.id, user.name, highres_cell, body.message)

    metrics.api_requests_total.labels(endpoint="post_message", status="success").inc()
    metrics.request_duration_seconds.labels(endpoint="post_message").observe(time.time() - start_time)

    return ApiResult(result=True, message_id=message_id)


@app.get("/api/v1/messages", response_model=ApiResult, response_model_exclude_none=True)
def get_messages(query: Annotated[MessagesQuery, Query()], r: Store):
    """
    Get messages posted within ~76m of the device, newest first.

    Process:
    1. Check the device is registered
    2. Encode the position at high and low resolution
    3. Scan the 17 proximity ranges and load bodies newer than newer_than

    Args:
        query: MessagesQuery with uuid, longitude, latitude, newer_than

    Returns:
        ApiResult with the list of messages

    Raises:
        NotRegisteredError: If the device never registered
    """
    start_time = time.time()

    if not user_exists(r, hash_token(query.uuid)):
        raise NotRegisteredError()

    highres_cell = locate(query.longitude, query.latitude, HIGHRES_STEPS)
    lowres_cell = locate(query.longitude, query.latitude, LOWRES_STEPS)

    messages = load_messages(r, highres_cell, lowres_cell, query.newer_than)

    metrics.api_requests_total.labels(endpoint="get_messages", status="success").inc()
    metrics.request_duration_seconds.labels(endpoint="get_messages").observe(time.time() - start_time)

    return ApiResult(
        result=True,
        messages=[MessageOut(**vars(message)) for message in messages],
    )
