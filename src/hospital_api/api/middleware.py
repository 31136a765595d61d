# src/hospital_api/api/middleware.py
"""Security response headers for API responses."""

from __future__ import annotations

from starlette.middleware.base import BaseHTTPMiddleware

CSP_NONE = "'none'"
CSP_SELF = "'self'"
CSP_UNSAFE_INLINE = "'unsafe-inline'"
CDN_JSDELIVR = "https://cdn.jsdelivr.net"

API_CSP_DIRECTIVES = {
    "default-src": [CSP_NONE],
    "frame-ancestors": [CSP_NONE],
    "base-uri": [CSP_NONE],
    "form-action": [CSP_NONE],
}

# Swagger UI and ReDoc pages load their bundles from jsdelivr and bootstrap
# with an inline script
DOCS_CSP_DIRECTIVES = {
    "default-src": [CSP_SELF],
    "script-src": [CSP_SELF, CSP_UNSAFE_INLINE, CDN_JSDELIVR],
    "style-src": [CSP_SELF, CSP_UNSAFE_INLINE, CDN_JSDELIVR, "https://fonts.googleapis.com"],
    "img-src": [CSP_SELF, "data:", "https://fastapi.tiangolo.com", "https://cdn.redoc.ly"],
    "font-src": [CSP_SELF, "https://fonts.gstatic.com"],
    "connect-src": [CSP_SELF],
    "worker-src": [CSP_SELF, "blob:"],
    "object-src": [CSP_NONE],
    "frame-ancestors": [CSP_NONE],
    "base-uri": [CSP_SELF],
}

DOCS_PATHS = ("/docs", "/redoc")

HSTS_VALUE = "max-age=31536000; includeSubDomains"


def build_csp(directives: dict[str, list[str]]) -> str:
    return "; ".join(f"{name} {' '.join(values)}" for name, values in directives.items())


def is_docs_path(path: str, docs_paths: tuple[str, ...] = DOCS_PATHS) -> bool:
    return any(path == p or path.startswith(f"{p}/") for p in docs_paths)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add hardening headers to every response.

    API responses are JSON and redirects only, so their CSP denies
    everything. The interactive docs pages get a policy that admits the
    Swagger UI and ReDoc assets. HSTS is sent only in production, where the
    API is served over TLS.
    """

    def __init__(self, app, production: bool = False, docs_paths: tuple[str, ...] = DOCS_PATHS):
        super().__init__(app)
        self.production = production
        self.docs_paths = docs_paths
        self.csp = build_csp(API_CSP_DIRECTIVES)
        self.docs_csp = build_csp(DOCS_CSP_DIRECTIVES)

    async def dispatch(self, request, call_next):
        response = await call_next(request)
        csp = self.docs_csp if is_docs_path(request.url.path, self.docs_paths) else self.csp

        response.headers.setdefault("X-Content-Type-Options", "nosniff")
        response.headers.setdefault("X-Frame-Options", "DENY")
        response.headers.setdefault("Referrer-Policy", "no-referrer")
        response.headers.setdefault("Content-Security-Policy", csp)
        if self.production:
            response.headers.setdefault("Strict-Transport-Security", HSTS_VALUE)
        return response
