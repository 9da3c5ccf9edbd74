import inspect
import json
import os
import socket
from pathlib import Path

import httpx
import pytest
from sqlalchemy.engine import make_url
from sqlalchemy.exc import ArgumentError

from backend.core.observability.metrics import reset_metrics

VIOLATIONS = []
ARTIFACTS_DIR = Path("artifacts")
ARTIFACTS_DIR.mkdir(parents=True, exist_ok=True)
REPORT = ARTIFACTS_DIR / "egress-violations.json"

# Only test code and the HTTP adapters may open clients; everything else
# (engine, scheduler, repositories) must go through injected fakes.
ALLOWED_CLIENT_PATHS = ["/tests/", "/backend/integrations/"]


def _is_allowed_callstack(allowed_paths: list[str]) -> bool:
    for frame in inspect.stack():
        filename = (frame.filename or "").replace("\\", "/")
        for ap in allowed_paths:
            if ap in filename:
                return True
    return False


def _db_host_port() -> tuple[str | None, int | None]:
    raw = os.environ.get("DATABASE_URL", "")
    if not raw:
        return None, None
    try:
        url = make_url(raw)
    except ArgumentError:
        return None, None
    return url.host, url.port or (5432 if url.host else None)


@pytest.fixture(autouse=True, scope="session")
def egress_guard():
    db_host, db_port = _db_host_port()

    real_getaddrinfo = socket.getaddrinfo
    real_create_connection = socket.create_connection
    real_httpx_init = httpx.Client.__init__

    def guard_getaddrinfo(host, *args, **kwargs):
        if db_host and host == db_host:
            return real_getaddrinfo(host, *args, **kwargs)
        if _is_allowed_callstack(ALLOWED_CLIENT_PATHS):
            return real_getaddrinfo(host, *args, **kwargs)
        VIOLATIONS.append({"fn": "getaddrinfo", "host": str(host)})
        raise RuntimeError("Egress blocked: getaddrinfo disallowed")

    def guard_create_connection(address, *args, **kwargs):
        host, port = (address[0], address[1]) if isinstance(address, tuple) else (None, None)
        if (db_host and host == db_host) or (db_port and port == db_port):
            return real_create_connection(address, *args, **kwargs)
        if _is_allowed_callstack(ALLOWED_CLIENT_PATHS):
            return real_create_connection(address, *args, **kwargs)
        VIOLATIONS.append({"fn": "create_connection", "address": str(address)})
        raise RuntimeError("Egress blocked: create_connection disallowed")

    def guard_httpx_init(self, *args, **kwargs):
        if not _is_allowed_callstack(ALLOWED_CLIENT_PATHS):
            VIOLATIONS.append({"fn": "httpx.Client.__init__"})
            raise RuntimeError("Egress blocked: httpx.Client not allowed from this callsite")
        return real_httpx_init(self, *args, **kwargs)

    socket.getaddrinfo = guard_getaddrinfo  # type: ignore[assignment]
    socket.create_connection = guard_create_connection  # type: ignore[assignment]
    httpx.Client.__init__ = guard_httpx_init  # type: ignore[assignment]

    yield

    socket.getaddrinfo = real_getaddrinfo  # type: ignore[assignment]
    socket.create_connection = real_create_connection  # type: ignore[assignment]
    httpx.Client.__init__ = real_httpx_init  # type: ignore[assignment]

    REPORT.write_text(json.dumps(VIOLATIONS, indent=2))


@pytest.fixture(autouse=True)
def _clean_metrics():
    reset_metrics()
    yield
    reset_metrics()
