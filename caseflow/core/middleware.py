from contextvars import ContextVar
import logging
import time
import uuid

from caseflow.core.config import settings


logger = logging.getLogger("caseflow.core")

_tenant_id: ContextVar[str] = ContextVar("tenant_id", default="")
_request_id: ContextVar[str] = ContextVar("request_id", default="")
_user_id: ContextVar[str] = ContextVar("user_id", default="")

# first path segments under the API prefix that are not tenants
_PUBLIC_SEGMENTS = {"auth", "health", "metrics", "docs", "openapi.json"}


def get_current_tenant_id() -> str:
    return _tenant_id.get()


def get_current_request_id() -> str:
    return _request_id.get()


def get_current_user_id() -> str:
    return _user_id.get()


def bind_tenant_id(tenant_id: str) -> None:
    """Replace the path tenant (domain or id) with the resolved tenant id."""
    _tenant_id.set(tenant_id)


def bind_user_id(user_id: str) -> None:
    _user_id.set(user_id)


def tenant_from_path(path: str, prefix: str = settings.API_PREFIX) -> str:
    prefix = prefix.rstrip("/")
    if not path.startswith(prefix + "/"):
        return ""
    segment = path[len(prefix) + 1:].split("/", 1)[0]
    if not segment or segment in _PUBLIC_SEGMENTS:
        return ""
    return segment


class TenantMiddleware:
    def __init__(self, app):
        self.app = app

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        tenant_token = _tenant_id.set(tenant_from_path(scope.get("path", "")))
        user_token = _user_id.set("")
        try:
            await self.app(scope, receive, send)
        finally:
            _user_id.reset(user_token)
            _tenant_id.reset(tenant_token)


class RequestIdMiddleware:
    def __init__(self, app, slow_request_seconds: float = settings.SLOW_REQUEST_SECONDS):
        self.app = app
        self.slow_request_seconds = slow_request_seconds

    async def __call__(self, scope, receive, send):
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        headers = {
            key.decode("latin-1").lower(): value.decode("latin-1")
            for key, value in scope.get("headers", [])
        }
        request_id = headers.get("x-request-id") or str(uuid.uuid4())
        token = _request_id.set(request_id)
        start = time.time()
        status_code = 500

        async def send_wrapper(message):
            nonlocal status_code
            if message["type"] == "http.response.start":
                status_code = message.get("status", 500)
                raw_headers = list(message.get("headers", []))
                raw_headers.append((b"x-request-id", request_id.encode()))
                duration = f"{(time.time() - start):.3f}s"
                raw_headers.append((b"x-response-time", duration.encode()))
                message["headers"] = raw_headers
            await send(message)

        try:
            await self.app(scope, receive, send_wrapper)
        finally:
            duration = time.time() - start
            logger.info(
                f"{scope.get('method')} {scope.get('path')} "
                f"status={status_code} duration={duration:.3f}s tenant={get_current_tenant_id() or '-'}"
            )
            if duration > self.slow_request_seconds:
                logger.warning(
                    f"slow request {scope.get('method')} {scope.get('path')} took {duration:.3f}s"
                )
            _request_id.reset(token)
