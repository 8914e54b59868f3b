"""
Object storage gateway for source documents and generated previews.

Works against any S3-compatible store (MinIO in the deployed stack) using
path-style addressing, so public URLs take the ``<endpoint>/<bucket>/<key>``
form.
"""

import uuid
from pathlib import Path

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from preview_worker.config import Settings
from preview_worker.exceptions import ConfigurationError, DownloadFailure, UploadFailure
from preview_worker.models.conversion import PDF_MIME_TYPE, PreviewResult

NOT_FOUND_CODES = {"404", "NoSuchKey", "NotFound"}
DOWNLOAD_CHUNK_SIZE = 64 * 1024


class StorageGateway:
    """Downloads sources from and uploads PDFs to the object store."""

    def __init__(
        self,
        client,
        bucket: str,
        endpoint: str | None,
        public_endpoint: str | None = None,
    ):
        """
        Initialize the storage gateway.

        Args:
            client: boto3 S3 client
            bucket: Bucket holding sources and previews
            endpoint: Internal endpoint of the object store
            public_endpoint: Endpoint reachable by end users, if different
        """
        self.client = client
        self.bucket = bucket
        self.endpoint = endpoint
        self.public_endpoint = public_endpoint

    @classmethod
    def from_settings(cls, settings: Settings) -> "StorageGateway":
        """Build a gateway with a boto3 client configured from settings."""
        session = boto3.session.Session(
            aws_access_key_id=settings.MINIO_ACCESS_KEY,
            aws_secret_access_key=settings.MINIO_SECRET_KEY,
        )
        client = session.client(
            "s3",
            endpoint_url=settings.MINIO_ENDPOINT,
            config=Config(
                region_name=settings.MINIO_REGION,
                s3={"addressing_style": "path"},
                retries={"max_attempts": 3, "mode": "standard"},
            ),
        )
        return cls(
            client,
            bucket=settings.MINIO_BUCKET,
            endpoint=settings.MINIO_ENDPOINT,
            public_endpoint=settings.public_storage_endpoint,
        )

    def download(self, key: str, local_path: Path) -> Path:
        """
        Stream an object to a local file.

        Args:
            key: Object key of the source document
            local_path: Destination file

        Returns:
            The destination path

        Raises:
            DownloadFailure: If the object is missing, empty or unreadable
        """
        local_path = Path(local_path)
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=key)
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code")
            if error_code in NOT_FOUND_CODES:
                raise DownloadFailure(f"Object not found in storage: {key}", key) from exc
            raise DownloadFailure(f"Failed to download {key} from storage: {error_code}", key) from exc
        except BotoCoreError as exc:
            raise DownloadFailure(f"Failed to download {key} from storage: {exc}", key) from exc

        body = response.get("Body")
        if body is None:
            raise DownloadFailure(f"Object not found in storage: {key}", key)

        try:
            with local_path.open("wb") as handle:
                for chunk in body.iter_chunks(chunk_size=DOWNLOAD_CHUNK_SIZE):
                    if chunk:
                        handle.write(chunk)
        except (BotoCoreError, OSError) as exc:
            raise DownloadFailure(f"Failed to download {key} from storage: {exc}", key) from exc
        finally:
            body.close()

        logger.debug(f"Downloaded {key} -> {local_path}")
        return local_path

    def upload_pdf(self, local_path: Path) -> PreviewResult:
        """
        Upload a PDF under a fresh random key.

        Args:
            local_path: PDF to upload

        Returns:
            PreviewResult with the object key and its public URL

        Raises:
            UploadFailure: If the object store rejects the upload
            ConfigurationError: If no endpoint is known to build the URL
        """
        key = f"{uuid.uuid4()}.pdf"
        base_url = self.public_endpoint or self.endpoint
        if not base_url:
            raise ConfigurationError(
                "MINIO_PUBLIC_ENDPOINT or MINIO_ENDPOINT must be set",
                missing=["MINIO_PUBLIC_ENDPOINT", "MINIO_ENDPOINT"],
            )

        try:
            data = Path(local_path).read_bytes()
            self.client.put_object(
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=PDF_MIME_TYPE,
            )
        except ClientError as exc:
            error_code = exc.response.get("Error", {}).get("Code")
            raise UploadFailure(f"Failed to upload preview {key}: {error_code}", key) from exc
        except (BotoCoreError, OSError) as exc:
            raise UploadFailure(f"Failed to upload preview {key}: {exc}", key) from exc

        url = f"{base_url.rstrip('/')}/{self.bucket}/{key}"
        logger.debug(f"Uploaded preview {key}")
        return PreviewResult(key=key, url=url)
