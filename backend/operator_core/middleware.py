from django.conf import settings
from django.http import HttpResponseNotFound

GATED_PREFIXES = (
    ("/admin/", "ENABLE_DJANGO_ADMIN"),
    ("/api/operator/", "ENABLE_OPERATOR"),
)


class OpsOnlyRouteGatingMiddleware:
    """Hide operator and admin routes unless enabled and requested on an ops host."""

    def __init__(self, get_response):
        self.get_response = get_response

    def __call__(self, request):
        path = request.path or ""
        for prefix, flag in GATED_PREFIXES:
            if not path.startswith(prefix):
                continue
            if not getattr(settings, flag, False) or not self._is_ops_host(request):
                return HttpResponseNotFound()
            break
        return self.get_response(request)

    def _is_ops_host(self, request) -> bool:
        allowed = {host.lower() for host in getattr(settings, "OPS_ALLOWED_HOSTS", [])}
        hostname = (request.get_host() or "").split(":", 1)[0].lower()
        return hostname in allowed
