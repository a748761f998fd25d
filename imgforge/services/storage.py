from io import BytesIO
from pathlib import Path, PurePosixPath

import boto3
import structlog
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError

from imgforge.core.config import settings
from imgforge.domain.errors import StorageError
from imgforge.domain.ports import StoragePort

logger = structlog.get_logger()


def _join_key(directory: str, file_name: str) -> str:
    directory = directory.strip("/")
    return f"{directory}/{file_name}" if directory else file_name


def _with_scheme(endpoint: str) -> str:
    if not endpoint.startswith(("http://", "https://")):
        return f"http://{endpoint}"
    return endpoint


class S3StorageService(StoragePort):
    """S3-compatible storage service for MinIO/S3."""

    def __init__(self, client=None, presign_client=None, bucket: str | None = None) -> None:
        endpoint = _with_scheme(settings.minio_endpoint)

        self.client = client or boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=settings.minio_access_key,
            aws_secret_access_key=settings.minio_secret_key,
            config=Config(signature_version="s3v4"),
        )
        self.bucket = bucket or settings.minio_bucket

        # Client for presigned URLs (external access)
        if presign_client is None and client is None:
            external_endpoint = _with_scheme(settings.minio_external_endpoint or endpoint)
            presign_client = boto3.client(
                "s3",
                endpoint_url=external_endpoint,
                aws_access_key_id=settings.minio_access_key,
                aws_secret_access_key=settings.minio_secret_key,
                config=Config(signature_version="s3v4"),
            )
        self.presign_client = presign_client or self.client

    def store(self, data: bytes, directory: str, file_name: str, content_type: str | None = None) -> str:
        key = _join_key(directory, file_name)
        extra_args = {"ContentType": content_type} if content_type else {}
        try:
            self.client.upload_fileobj(BytesIO(data), self.bucket, key, ExtraArgs=extra_args)
        except (ClientError, BotoCoreError) as e:
            raise StorageError("store", key, str(e)) from e
        logger.info("file_stored", bucket=self.bucket, key=key, size=len(data))
        return key

    def retrieve(self, path: str) -> bytes:
        try:
            response = self.client.get_object(Bucket=self.bucket, Key=path)
            return response["Body"].read()
        except (ClientError, BotoCoreError) as e:
            raise StorageError("retrieve", path, str(e)) from e

    def delete(self, path: str) -> None:
        try:
            self.client.delete_object(Bucket=self.bucket, Key=path)
        except (ClientError, BotoCoreError) as e:
            raise StorageError("delete", path, str(e)) from e
        logger.info("file_deleted", bucket=self.bucket, key=path)

    def exists(self, path: str) -> bool:
        try:
            self.client.head_object(Bucket=self.bucket, Key=path)
            return True
        except ClientError:
            return False

    def get_public_url(self, path: str, expires_in: int | None = None) -> str:
        if expires_in is None:
            expires_in = settings.presigned_url_expiry_seconds
        return self.presign_client.generate_presigned_url(
            "get_object", Params={"Bucket": self.bucket, "Key": path}, ExpiresIn=expires_in
        )

    def list_files(self, directory: str) -> list[str]:
        prefix = directory.strip("/") + "/" if directory.strip("/") else ""
        keys: list[str] = []
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(Bucket=self.bucket, Prefix=prefix):
                keys.extend(item["Key"] for item in page.get("Contents", []))
        except (ClientError, BotoCoreError) as e:
            raise StorageError("list", prefix, str(e)) from e
        return keys

    def ensure_bucket_exists(self) -> None:
        try:
            self.client.head_bucket(Bucket=self.bucket)
        except ClientError:
            self.client.create_bucket(Bucket=self.bucket)
            logger.info("bucket_created", bucket=self.bucket)


class LocalStorageService(StoragePort):
    """Filesystem storage rooted at a single directory."""

    def __init__(self, root: str | Path | None = None, public_base_url: str | None = None) -> None:
        self.root = Path(root or settings.local_storage_path).resolve()
        self.public_base_url = (public_base_url or settings.public_base_url).rstrip("/")

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path.lstrip("/"))
        if ".." in relative.parts:
            raise StorageError("resolve", path, "path escapes storage root")
        return self.root.joinpath(*relative.parts)

    def store(self, data: bytes, directory: str, file_name: str, content_type: str | None = None) -> str:
        key = _join_key(directory, file_name)
        target = self._resolve(key)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)
        except OSError as e:
            raise StorageError("store", key, str(e)) from e
        logger.info("file_stored", root=str(self.root), key=key, size=len(data))
        return key

    def retrieve(self, path: str) -> bytes:
        try:
            return self._resolve(path).read_bytes()
        except OSError as e:
            raise StorageError("retrieve", path, str(e)) from e

    def delete(self, path: str) -> None:
        try:
            self._resolve(path).unlink(missing_ok=True)
        except OSError as e:
            raise StorageError("delete", path, str(e)) from e
        logger.info("file_deleted", root=str(self.root), key=path)

    def exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def get_public_url(self, path: str) -> str:
        return f"{self.public_base_url}/{path.lstrip('/')}"

    def list_files(self, directory: str) -> list[str]:
        base = self._resolve(directory)
        if not base.is_dir():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in base.rglob("*") if p.is_file())

    def ensure_bucket_exists(self) -> None:
        self.root.mkdir(parents=True, exist_ok=True)
