import shutil
import tempfile
from unittest.mock import Mock, patch
from urllib.parse import parse_qs, urlsplit

import requests
from django.core.files.storage import default_storage
from django.test import TestCase, override_settings

from sellmyimages.models import JobStatus, PaymentStatus, SiteImage
from sellmyimages.services import jobs, upscaling
from sellmyimages.services.images import site_image_source
from sellmyimages.utils import ConflictError, NotFoundError, UpsamplerError


class UpscalingServiceTest(TestCase):
    def setUp(self):
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        media = override_settings(MEDIA_ROOT=media_root, SITE_URL="https://api.example.com")
        media.enable()
        self.addCleanup(media.disable)

        image = SiteImage.objects.create(file_url="https://example.com/a.jpg", width=1000, height=800)
        self.source = site_image_source(image.pk, post_id=3)
        self.job = jobs.create_job(self.source, "4x")

    def _paid(self):
        jobs.transition(
            self.job.job_id,
            status=JobStatus.PENDING,
            payment_status=PaymentStatus.PAID,
        )

    def _processing(self):
        self._paid()
        jobs.transition(self.job.job_id, status=JobStatus.PROCESSING)

    @patch("sellmyimages.tasks.upscaling.dispatch_upscale.delay")
    def test_trigger_claims_job_and_dispatches_once(self, mock_delay):
        self._paid()

        self.assertTrue(upscaling.trigger_upscaling(self.job.job_id))
        with self.assertRaises(ConflictError):
            upscaling.trigger_upscaling(self.job.job_id)

        job = jobs.get_job(self.job.job_id)
        self.assertEqual(job.status, JobStatus.PROCESSING)
        self.assertIsNotNone(job.processing_started_at)
        mock_delay.assert_called_once_with(str(self.job.job_id))

    @patch("sellmyimages.tasks.upscaling.dispatch_upscale.delay")
    def test_trigger_refuses_unpaid_job(self, mock_delay):
        jobs.transition(self.job.job_id, status=JobStatus.PENDING)

        with self.assertRaises(ConflictError):
            upscaling.trigger_upscaling(self.job.job_id)

        mock_delay.assert_not_called()

    @patch("sellmyimages.tasks.upscaling.dispatch_upscale.delay")
    def test_admin_job_is_marked_paid(self, mock_delay):
        job = upscaling.create_admin_job(self.source, "2x", email="admin@example.com")

        self.assertEqual(job.status, JobStatus.PROCESSING)
        self.assertEqual(job.payment_status, PaymentStatus.PAID)
        self.assertIsNone(job.customer_price)
        mock_delay.assert_called_once_with(str(job.job_id))

    def test_callback_token_round_trip(self):
        url = upscaling.build_callback_url(self.job.job_id)

        self.assertTrue(url.startswith("https://api.example.com/api/upscale/callback/?token="))
        token = parse_qs(urlsplit(url).query)["token"][0]
        self.assertEqual(upscaling.read_callback_token(token), str(self.job.job_id))

    def test_callback_token_rejects_forgery(self):
        with self.assertRaises(NotFoundError):
            upscaling.read_callback_token(f"{self.job.job_id}:forged")
        with self.assertRaises(NotFoundError):
            upscaling.read_callback_token(None)

    def test_submit_records_provider_task(self):
        self._processing()
        client = Mock()
        client.create_task.return_value = {"id": "ups_1", "status": "IN_QUEUE"}

        self.assertTrue(upscaling.submit_to_provider(self.job.job_id, client=client))

        kwargs = client.create_task.call_args[1]
        self.assertEqual(kwargs["image_url"], "https://example.com/a.jpg")
        self.assertEqual(kwargs["upscale_factor"], 4)
        self.assertIn("/api/upscale/callback/?token=", kwargs["callback_url"])
        self.assertEqual(jobs.get_job(self.job.job_id).provider_task_id, "ups_1")

    def test_submit_failure_fails_job(self):
        self._processing()
        client = Mock()
        client.create_task.side_effect = UpsamplerError("quota exceeded")

        self.assertFalse(upscaling.submit_to_provider(self.job.job_id, client=client))

        job = jobs.get_job(self.job.job_id)
        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertIn("quota exceeded", job.failure_reason)
        self.assertEqual(job.payment_status, PaymentStatus.PAID)

    def test_submit_skips_jobs_not_processing(self):
        client = Mock()

        self.assertFalse(upscaling.submit_to_provider(self.job.job_id, client=client))
        client.create_task.assert_not_called()

    @patch("sellmyimages.services.upscaling.requests.get")
    def test_success_result_stores_file_and_completes(self, mock_get):
        self._processing()
        response = Mock()
        response.content = b"upscaled-bytes"
        response.headers = {"Content-Type": "image/png"}
        response.raise_for_status.return_value = None
        mock_get.return_value = response

        self.assertTrue(
            upscaling.handle_upscale_result(self.job.job_id, True, "https://cdn.example.com/out/result.png")
        )

        job = jobs.get_job(self.job.job_id)
        self.assertEqual(job.status, JobStatus.COMPLETED)
        self.assertEqual(job.upscaled_file_path, f"upscaled/{self.job.job_id}.png")
        self.assertEqual(len(job.download_token), 64)
        self.assertIsNotNone(job.download_expires_at)
        self.assertIsNotNone(job.completed_at)
        with default_storage.open(job.upscaled_file_path, "rb") as stored:
            self.assertEqual(stored.read(), b"upscaled-bytes")

    @patch("sellmyimages.services.upscaling.requests.get")
    def test_result_for_finished_job_is_ignored(self, mock_get):
        self._processing()
        jobs.mark_failed(self.job.job_id, "timed out")

        self.assertFalse(
            upscaling.handle_upscale_result(self.job.job_id, True, "https://cdn.example.com/out/result.png")
        )
        mock_get.assert_not_called()
        self.assertEqual(jobs.get_job(self.job.job_id).status, JobStatus.FAILED)

    @patch("sellmyimages.services.upscaling.requests.get", side_effect=requests.ConnectionError("reset"))
    def test_unreachable_output_fails_job(self, _mock_get):
        self._processing()

        self.assertFalse(
            upscaling.handle_upscale_result(self.job.job_id, True, "https://cdn.example.com/out/result.png")
        )
        self.assertEqual(jobs.get_job(self.job.job_id).status, JobStatus.FAILED)

    def test_failure_result_keeps_reason(self):
        self._processing()

        self.assertTrue(upscaling.handle_upscale_result(self.job.job_id, False, "Image too small"))

        job = jobs.get_job(self.job.job_id)
        self.assertEqual(job.status, JobStatus.FAILED)
        self.assertEqual(job.failure_reason, "Image too small")
