"""
Async S3 Storage Service.

Uses aioboto3 to hand out presigned URLs: clients upload job inputs and
download results directly, the service never proxies file content.
"""

from contextlib import asynccontextmanager

import aioboto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from baktaforge.config import S3Settings
from baktaforge.core.exceptions import StorageError
from baktaforge.core.logging import get_logger
from baktaforge.models import RESULT_ARTIFACTS, Job

logger = get_logger(__name__)


class AsyncS3Service:
    """Presigned URL generation for job data."""

    def __init__(self, settings: S3Settings):
        self.settings = settings
        self._session = aioboto3.Session()
        self._config = Config(
            signature_version='s3v4',
            s3={'addressing_style': 'path'},
            retries={'max_attempts': 3, 'mode': 'adaptive'},
        )

    @asynccontextmanager
    async def _get_client(self):
        """Get S3 client context manager."""
        async with self._session.client(
            's3',
            endpoint_url=self.settings.endpoint,
            region_name=self.settings.region,
            aws_access_key_id=self.settings.access_key,
            aws_secret_access_key=self.settings.secret_key,
            config=self._config,
        ) as client:
            yield client

    async def generate_presigned_url(
        self,
        bucket: str,
        key: str,
        expires_in: int = 3600,
        method: str = "get_object",
    ) -> str:
        """Generate presigned URL for object access."""
        try:
            async with self._get_client() as client:
                return await client.generate_presigned_url(
                    method,
                    Params={'Bucket': bucket, 'Key': key},
                    ExpiresIn=expires_in,
                )
        except (BotoCoreError, ClientError) as e:
            logger.error("Presigning failed", bucket=bucket, key=key, error=str(e))
            raise StorageError(f"Cannot presign {method}: {e}", path=f"{bucket}/{key}") from e

    # ─────────────────────────────────────────────────────────────────────
    # Job data
    # ─────────────────────────────────────────────────────────────────────

    async def upload_links(self, job: Job) -> tuple[str, str, str]:
        """PUT links for the FASTA, training and replicon inputs, in that order."""
        expires_in = self.settings.upload_link_days * 24 * 3600
        links = []
        for key in (job.fasta_key, job.training_key, job.replicon_key):
            links.append(
                await self.generate_presigned_url(
                    job.data_bucket, key, expires_in, method="put_object"
                )
            )
        return links[0], links[1], links[2]

    async def download_links(self, job: Job) -> dict[str, str]:
        """GET links for every result artifact, keyed by artifact name."""
        links = {}
        for name, suffix in RESULT_ARTIFACTS:
            key = f"{job.result_key}/result.{suffix}"
            links[name] = await self.generate_presigned_url(
                job.data_bucket, key, self.settings.download_link_seconds
            )
        return links
