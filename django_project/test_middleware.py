"""Tests for custom middleware."""

from django.http import HttpResponse
from django.test import RequestFactory, SimpleTestCase

from .middleware import NoCacheAPIMiddleware


class NoCacheAPIMiddlewareTests(SimpleTestCase):
    def setUp(self):
        self.factory = RequestFactory()
        self.middleware = NoCacheAPIMiddleware(get_response=lambda r: HttpResponse())

    def test_api_responses_are_not_cached(self):
        response = self.middleware(self.factory.get("/api/v1/families/1/reminders/"))
        self.assertEqual(response["Cache-Control"], "no-cache, no-store, must-revalidate")
        self.assertEqual(response["Pragma"], "no-cache")
        self.assertEqual(response["Expires"], "0")

    def test_other_responses_are_untouched(self):
        response = self.middleware(self.factory.get("/admin/"))
        self.assertFalse(response.has_header("Cache-Control"))
