from .cleanup import cleanup_abandoned_jobs, purge_expired_downloads
from .upscaling import dispatch_upscale

__all__ = [
    "dispatch_upscale",
    "cleanup_abandoned_jobs",
    "purge_expired_downloads",
]
