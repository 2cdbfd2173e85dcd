from django.utils.deprecation import MiddlewareMixin


class NoCacheAPIMiddleware(MiddlewareMixin):
    """Middleware to disable browser caching on API responses.

    Reminder state (sent / pending) and swap or expense statuses change
    outside the client's control, so API responses must never be served
    from a browser cache.
    """

    def process_response(self, request, response):
        """Add Cache-Control headers to API responses."""
        if request.path_info.startswith("/api/"):
            response["Cache-Control"] = "no-cache, no-store, must-revalidate"
            response["Pragma"] = "no-cache"
            response["Expires"] = "0"
        return response
