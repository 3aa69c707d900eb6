from django.db import models


class ButtonClick(models.Model):
    """Buy button click, used for conversion reporting"""

    post_id = models.PositiveIntegerField()
    site_image = models.ForeignKey(
        'SiteImage',
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name='clicks'
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        db_table = 'smi_clicks'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['post_id', 'created_at']),
        ]

    def __str__(self):
        return f"Click on post {self.post_id}"
