import logging
from datetime import datetime, timezone

import boto3
from botocore.exceptions import BotoCoreError, ClientError

import config

logger = logging.getLogger(__name__)


class UploadError(Exception):
    pass


def create_s3_client(s3_config: config.Config):
    session = boto3.session.Session()
    return session.client(
        service_name="s3",
        endpoint_url=s3_config.endpoint,
        aws_access_key_id=s3_config.access_key_id,
        aws_secret_access_key=s3_config.secret_access_key,
        region_name=s3_config.region,
    )


class S3Uploader:
    """Uploads one local file per call as a single PUT.

    ``upload`` either returns (object stored) or raises ``UploadError``;
    there is no retry and no multipart/resume, so a failed transfer is
    repeated in full by a later cycle.
    """

    def __init__(self, s3_config: config.Config, client=None, log: logging.Logger | None = None):
        self._config = s3_config
        self._client = client
        self._log = log or logger

    def _get_client(self):
        # Created on first upload; construction errors surface as UploadError.
        if self._client is None:
            self._client = create_s3_client(self._config)
        return self._client

    def upload(self, local_file: str, key: str) -> None:
        bucket = self._config.bucket
        self._log.info("S3: Uploading %s to s3://%s/%s", local_file, bucket, key)
        try:
            with open(local_file, "rb") as body:
                self._get_client().put_object(Bucket=bucket, Key=key, Body=body)
        except (ClientError, BotoCoreError, OSError, ValueError) as e:
            self._log.error("Unable to upload file to Amazon S3 at %s (%s)", datetime.now(timezone.utc).isoformat(), e)
            raise UploadError(str(e)) from e

        self._log.info('Successfully uploaded file "%s" to amazon s3', local_file)
