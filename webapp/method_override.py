"""Let HTML forms reach PUT/PATCH/DELETE routes through POST."""

from urllib.parse import parse_qs


class MethodOverrideMiddleware:
    """Rewrite ``POST ...?_method=PATCH`` into a ``PATCH`` request.

    Only POST requests are rewritten and only to the methods listed in
    ``allowed_methods``.
    """

    param = "_method"
    allowed_methods = frozenset(["PUT", "PATCH", "DELETE"])

    def __init__(self, app):
        self.app = app

    def __call__(self, environ, start_response):
        if environ.get("REQUEST_METHOD", "").upper() == "POST":
            query = parse_qs(environ.get("QUERY_STRING", ""))
            values = query.get(self.param)
            if values:
                method = values[0].strip().upper()
                if method in self.allowed_methods:
                    environ["REQUEST_METHOD"] = method
                    environ["werkzeug.method_override.original"] = "POST"
        return self.app(environ, start_response)
