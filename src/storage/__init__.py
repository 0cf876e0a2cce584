from .client import ObjectStorageClient
from .models import UploadResponse

__all__ = ["ObjectStorageClient", "UploadResponse"]
