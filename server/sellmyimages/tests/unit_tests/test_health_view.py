from unittest.mock import Mock, patch

from django.test import TestCase
from django.test import override_settings
from rest_framework.test import APIClient


class HealthCheckViewTest(TestCase):
    @override_settings(
        CELERY_BROKER_URL="redis://localhost:6379/0",
        STRIPE_SECRET_KEY="sk_test_123",
        STRIPE_WEBHOOK_SECRET="whsec_123",
        UPSAMPLER_API_KEY="ups-key",
    )
    @patch("sellmyimages.views.health.cache")
    @patch("sellmyimages.views.health.connection.ensure_connection")
    @patch("sellmyimages.views.health.current_app")
    def test_health_check_healthy(self, mock_current_app, _mock_db, mock_cache):
        mock_cache.set.return_value = True
        mock_cache.get.return_value = "ok"
        inspector = Mock()
        inspector.stats.return_value = {"worker": {}}
        mock_current_app.control.inspect.return_value = inspector

        client = APIClient()
        response = client.get("/api/health/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], "healthy")
        self.assertEqual(response.data["checks"]["payments"], "ok")
        self.assertEqual(response.data["checks"]["storage"], "ok")
        self.assertTrue(response.data["sales_enabled"])

    @override_settings(CELERY_BROKER_URL="", STRIPE_SECRET_KEY="sk_test_123", STRIPE_WEBHOOK_SECRET="whsec_123")
    @patch("sellmyimages.views.health.cache")
    @patch("sellmyimages.views.health.connection.ensure_connection")
    def test_health_check_celery_not_configured(self, _mock_db, mock_cache):
        mock_cache.set.return_value = True
        mock_cache.get.return_value = "ok"

        client = APIClient()
        response = client.get("/api/health/")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["status"], "degraded")
        self.assertEqual(response.data["checks"]["celery"], "not configured")

    @override_settings(STRIPE_SECRET_KEY="")
    def test_health_check_reports_missing_stripe(self):
        client = APIClient()
        response = client.get("/api/health/")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["checks"]["payments"], "not configured")

    @override_settings(UPSAMPLER_API_KEY="")
    @patch("sellmyimages.views.health.default_storage.save", side_effect=OSError("read-only file system"))
    def test_health_check_reports_unwritable_storage(self, _mock_save):
        client = APIClient()
        response = client.get("/api/health/")

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["checks"]["storage"], "error: read-only file system")
        self.assertEqual(response.data["checks"]["upsampler"], "not configured")
