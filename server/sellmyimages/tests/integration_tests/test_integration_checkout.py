import json
import shutil
import tempfile
from decimal import Decimal
from unittest.mock import Mock, patch
from urllib.parse import urlsplit

from django.contrib.auth import get_user_model
from django.core.cache import cache
from django.test import TestCase, override_settings
from rest_framework.test import APIClient

from sellmyimages.models import JobStatus, PaymentStatus, SiteImage, UpscaleJob
from sellmyimages.services import jobs
from sellmyimages.services.images import site_image_source
from sellmyimages.tasks.upscaling import dispatch_upscale

User = get_user_model()


@override_settings(
    STRIPE_SECRET_KEY="sk_test_123",
    STRIPE_WEBHOOK_SECRET="whsec_123",
    SITE_URL="https://api.example.com",
    DOWNLOAD_MAX_USES=1,
)
class CheckoutToDownloadIntegrationTest(TestCase):
    def setUp(self):
        cache.clear()
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        media = override_settings(MEDIA_ROOT=media_root)
        media.enable()
        self.addCleanup(media.disable)

        self.client = APIClient()
        self.image = SiteImage.objects.create(
            title="Lighthouse",
            file_url="https://example.com/lighthouse.jpg",
            width=1000,
            height=800,
        )

        verify = patch("sellmyimages.views.payment.stripe.WebhookSignature.verify_header")
        verify.start()
        self.addCleanup(verify.stop)

    def _webhook(self, event_type, session):
        event = {"id": f"evt_{event_type}", "type": event_type, "data": {"object": session}}
        return self.client.post(
            "/api/payments/webhook/",
            data=json.dumps(event),
            content_type="application/json",
            HTTP_STRIPE_SIGNATURE="t=1,v1=sig",
        )

    def _session(self, job_id, session_id="cs_1"):
        return {
            "id": session_id,
            "payment_status": "paid",
            "payment_intent": "pi_1",
            "amount_total": 104,
            "customer_details": {"email": "buyer@example.com"},
            "metadata": {"job_id": job_id, "resolution": "4x", "source": "sell-my-images"},
        }

    @patch("sellmyimages.services.upscaling.requests.get")
    @patch("sellmyimages.services.upscaling.get_upsampler_client")
    @patch("sellmyimages.tasks.upscaling.dispatch_upscale.delay")
    @patch("sellmyimages.services.payments.stripe.checkout.Session.create")
    def test_paid_checkout_ends_in_single_use_download(
        self,
        mock_create,
        mock_delay,
        mock_client_factory,
        mock_get,
    ):
        mock_create.return_value = Mock(
            id="cs_1", url="https://checkout.stripe.com/c/cs_1", amount_total=104
        )
        upsampler = Mock()
        upsampler.create_task.return_value = {"id": "ups_1", "status": "IN_QUEUE"}
        mock_client_factory.return_value = upsampler
        output = Mock()
        output.content = b"\x89PNG upscaled"
        output.headers = {"Content-Type": "image/png"}
        output.raise_for_status.return_value = None
        mock_get.return_value = output

        # Checkout
        response = self.client.post(
            "/api/checkout/",
            {"attachment_id": self.image.pk, "post_id": 9, "resolution": "4x"},
            format="json",
        )
        self.assertEqual(response.status_code, 201)
        job_id = response.data["job_id"]
        self.assertEqual(self.client.get(f"/api/jobs/{job_id}/status/").data["status"], "processing")

        # Payment, delivered twice
        self.assertEqual(self._webhook("checkout.session.completed", self._session(job_id)).status_code, 200)
        self.assertEqual(self._webhook("checkout.session.completed", self._session(job_id)).status_code, 200)
        mock_delay.assert_called_once_with(job_id)

        job = jobs.get_job(job_id)
        self.assertEqual(job.status, JobStatus.PROCESSING)
        self.assertEqual(job.payment_status, PaymentStatus.PAID)
        self.assertEqual(job.amount_charged, Decimal("1.04"))
        self.assertEqual(job.email, "buyer@example.com")

        # Worker submits to the provider
        dispatch_upscale(job_id)
        callback_url = upsampler.create_task.call_args[1]["callback_url"]
        self.assertTrue(callback_url.startswith("https://api.example.com/api/upscale/callback/"))

        # Provider reports success
        parts = urlsplit(callback_url)
        response = self.client.post(
            f"{parts.path}?{parts.query}",
            {"id": "ups_1", "status": "SUCCESS", "imageUrl": "https://cdn.upsampler.test/ups_1.png"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertTrue(response.data["applied"])

        status_response = self.client.get(f"/api/jobs/{job_id}/status/")
        self.assertEqual(status_response.data["status"], "completed")
        download_path = urlsplit(status_response.data["download_url"]).path

        # Single-use download
        response = self.client.get(download_path)
        self.assertEqual(response.status_code, 200)
        self.assertEqual(b"".join(response.streaming_content), b"\x89PNG upscaled")
        response.close()
        self.assertEqual(self.client.get(download_path).status_code, 410)

        # A late expiry for the paid session changes nothing
        self._webhook("checkout.session.expired", self._session(job_id))
        self.assertEqual(jobs.get_job(job_id).status, JobStatus.COMPLETED)

    @patch("sellmyimages.tasks.upscaling.dispatch_upscale.delay")
    @patch("sellmyimages.services.payments.stripe.checkout.Session.expire")
    @patch("sellmyimages.services.payments.stripe.checkout.Session.create")
    def test_expiry_then_late_payment(self, mock_create, _mock_expire, mock_delay):
        mock_create.return_value = Mock(
            id="cs_1", url="https://checkout.stripe.com/c/cs_1", amount_total=104
        )
        response = self.client.post(
            "/api/checkout/",
            {"attachment_id": self.image.pk, "post_id": 9, "resolution": "4x"},
            format="json",
        )
        job_id = response.data["job_id"]

        self._webhook("checkout.session.expired", self._session(job_id))
        self.assertEqual(jobs.get_job(job_id).status, JobStatus.ABANDONED)
        self.assertEqual(self.client.get(f"/api/jobs/{job_id}/status/").data["status"], "failed")

        self._webhook("checkout.session.completed", self._session(job_id))

        job = jobs.get_job(job_id)
        self.assertEqual(job.payment_status, PaymentStatus.PAID)
        self.assertEqual(job.status, JobStatus.PROCESSING)
        mock_delay.assert_called_once_with(job_id)

    @patch("sellmyimages.services.payments.stripe.checkout.Session.expire")
    @patch("sellmyimages.services.payments.stripe.checkout.Session.create")
    def test_expiry_of_replaced_session_keeps_job_open(self, mock_create, mock_expire):
        mock_create.side_effect = [
            Mock(id="cs_1", url="https://checkout.stripe.com/c/cs_1", amount_total=104),
            Mock(id="cs_2", url="https://checkout.stripe.com/c/cs_2", amount_total=104),
        ]
        payload = {"attachment_id": self.image.pk, "post_id": 9, "resolution": "4x"}
        job_id = self.client.post("/api/checkout/", payload, format="json").data["job_id"]
        self.client.post("/api/checkout/", payload, format="json")

        mock_expire.assert_called_once()
        self._webhook("checkout.session.expired", self._session(job_id, session_id="cs_1"))

        self.assertEqual(jobs.get_job(job_id).status, JobStatus.AWAITING_PAYMENT)
        self.assertEqual(UpscaleJob.objects.count(), 1)

    @patch("sellmyimages.tasks.upscaling.dispatch_upscale.delay")
    def test_admin_can_rerun_failed_job(self, mock_delay):
        admin_user = User.objects.create_superuser(username="root", email="root@example.com", password="pw")
        self.client.force_login(admin_user)
        failed = jobs.create_job(site_image_source(self.image.pk, post_id=9), "2x")
        jobs.transition(failed.job_id, status=JobStatus.FAILED, payment_status=PaymentStatus.PAID)

        response = self.client.post(
            "/admin/sellmyimages/upscalejob/",
            {"action": "rerun_as_admin_job", "index": 0, "_selected_action": [failed.pk]},
        )

        self.assertEqual(response.status_code, 302)
        self.assertEqual(UpscaleJob.objects.count(), 2)
        rerun = UpscaleJob.objects.exclude(pk=failed.pk).get()
        self.assertEqual(rerun.status, JobStatus.PROCESSING)
        self.assertEqual(rerun.payment_status, PaymentStatus.PAID)
        self.assertEqual(jobs.get_job(failed.job_id).status, JobStatus.FAILED)
        mock_delay.assert_called_once_with(str(rerun.job_id))
