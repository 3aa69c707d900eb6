import shutil
import tempfile
from datetime import timedelta

from django.core.files.base import ContentFile
from django.core.files.storage import default_storage
from django.test import TestCase, override_settings
from django.utils import timezone
from rest_framework.test import APIClient

from sellmyimages.models import JobStatus, PaymentStatus, SiteImage, UpscaleJob
from sellmyimages.services import downloads, jobs
from sellmyimages.services.images import site_image_source
from sellmyimages.utils import ForbiddenError, GoneError, NotFoundError


@override_settings(DOWNLOAD_EXPIRY_HOURS=24, DOWNLOAD_MAX_USES=1)
class DownloadGateTest(TestCase):
    def setUp(self):
        media_root = tempfile.mkdtemp()
        self.addCleanup(shutil.rmtree, media_root, ignore_errors=True)
        media = override_settings(MEDIA_ROOT=media_root)
        media.enable()
        self.addCleanup(media.disable)

        self.client = APIClient()
        image = SiteImage.objects.create(file_url="https://example.com/a.jpg", width=1000, height=800)
        self.job = jobs.create_job(site_image_source(image.pk, post_id=3), "2x")

    def _complete(self):
        path = default_storage.save(f"upscaled/{self.job.job_id}.png", ContentFile(b"png-bytes"))
        jobs.transition(self.job.job_id, status=JobStatus.PENDING, payment_status=PaymentStatus.PAID)
        jobs.transition(self.job.job_id, status=JobStatus.PROCESSING)
        token, expires_at = downloads.new_token()
        jobs.update_processing_result(self.job.job_id, path, token, expires_at)
        return token

    def test_new_token_is_random_hex(self):
        first, expires_at = downloads.new_token()
        second, _ = downloads.new_token()

        self.assertEqual(len(first), 64)
        int(first, 16)
        self.assertNotEqual(first, second)
        self.assertNotIn(str(self.job.job_id).replace("-", ""), first)
        self.assertAlmostEqual(
            (expires_at - timezone.now()).total_seconds(), 24 * 3600, delta=5
        )

    def test_redeem_returns_file(self):
        token = self._complete()

        handle, filename = downloads.redeem(token)
        with handle:
            self.assertEqual(handle.read(), b"png-bytes")
        self.assertEqual(filename, f"upscaled-2x-{self.job.job_id}.png")
        self.assertEqual(UpscaleJob.objects.get(pk=self.job.pk).download_count, 1)

    def test_single_use(self):
        token = self._complete()
        handle, _ = downloads.redeem(token)
        handle.close()

        with self.assertRaises(GoneError) as ctx:
            downloads.redeem(token)
        self.assertEqual(ctx.exception.code, "download_used")

    @override_settings(DOWNLOAD_MAX_USES=3)
    def test_configured_use_limit(self):
        token = self._complete()
        for _ in range(3):
            handle, _ = downloads.redeem(token)
            handle.close()

        with self.assertRaises(GoneError):
            downloads.redeem(token)

    def test_unknown_token(self):
        with self.assertRaises(NotFoundError):
            downloads.redeem("f" * 64)
        with self.assertRaises(NotFoundError):
            downloads.redeem("")

    def test_token_of_unfinished_job(self):
        UpscaleJob.objects.filter(pk=self.job.pk).update(download_token="a" * 64)

        with self.assertRaises(ForbiddenError):
            downloads.redeem("a" * 64)

    def test_expired_token(self):
        token = self._complete()
        UpscaleJob.objects.filter(pk=self.job.pk).update(
            download_expires_at=timezone.now() - timedelta(seconds=1)
        )

        with self.assertRaises(GoneError) as ctx:
            downloads.redeem(token)
        self.assertEqual(ctx.exception.code, "download_expired")

    def test_purged_file(self):
        token = self._complete()
        default_storage.delete(f"upscaled/{self.job.job_id}.png")

        with self.assertRaises(GoneError) as ctx:
            downloads.redeem(token)
        self.assertEqual(ctx.exception.code, "file_missing")

    def test_issue_token_replaces_link(self):
        old_token = self._complete()
        handle, _ = downloads.redeem(old_token)
        handle.close()

        job = downloads.issue_token(self.job.job_id)

        self.assertNotEqual(job.download_token, old_token)
        self.assertEqual(job.download_count, 0)
        with self.assertRaises(NotFoundError):
            downloads.redeem(old_token)
        handle, _ = downloads.redeem(job.download_token)
        handle.close()

    def test_issue_token_requires_completed_job(self):
        with self.assertRaises(ForbiddenError):
            downloads.issue_token(self.job.job_id)

    def test_download_view_streams_file(self):
        token = self._complete()

        response = self.client.get(f"/api/download/{token}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(b"".join(response.streaming_content), b"png-bytes")
        self.assertIn("attachment", response["Content-Disposition"])
        response.close()

        response = self.client.get(f"/api/download/{token}/")
        self.assertEqual(response.status_code, 410)
        self.assertEqual(response.data["error"]["code"], "DOWNLOAD_USED")

    def test_download_view_unknown_token(self):
        response = self.client.get("/api/download/nope/")

        self.assertEqual(response.status_code, 404)
        self.assertIn("error", response.data)
