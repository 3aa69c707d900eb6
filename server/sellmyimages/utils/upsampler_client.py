import requests
from typing import Dict, Optional
from django.conf import settings


class UpsamplerError(Exception):
    """Raised when the Upsampler API rejects a request"""


class UpsamplerClient:
    """Client for interacting with the Upsampler API"""

    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None):
        self.api_key = api_key or settings.UPSAMPLER_API_KEY
        self.base_url = base_url or settings.UPSAMPLER_API_URL
        self.timeout = settings.UPSAMPLER_TIMEOUT_SECONDS
        self.headers = {
            'Content-Type': 'application/json',
            'Authorization': f'Bearer {self.api_key}'
        }

    def create_task(self, image_url: str, upscale_factor: int, callback_url: str) -> Dict:
        """
        Submit an upscale job

        Args:
            image_url: Public URL of the source image
            upscale_factor: Output size multiple (2, 4 or 8)
            callback_url: Webhook the provider calls when the job finishes

        Returns:
            dict with the provider task ``id`` and its initial ``status``
        """
        url = f"{self.base_url}/precise-upscale"
        payload = {
            'input': {
                'imageUrl': image_url,
                'upscaleFactor': upscale_factor,
                'globalCreativity': 0,
                'detail': 5,
            },
            'webhook': callback_url,
        }

        response = requests.post(url, headers=self.headers, json=payload, timeout=self.timeout)
        response.raise_for_status()

        result = response.json()
        if not result.get('id') or result.get('status') == 'FAILED':
            raise UpsamplerError(f"Upsampler API error: {result}")

        return result


def get_upsampler_client() -> UpsamplerClient:
    return UpsamplerClient()
