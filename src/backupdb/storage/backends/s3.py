import os
from datetime import date
from pathlib import Path
from typing import Dict, Optional

import boto3
from boto3.exceptions import S3UploadFailedError
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from backupdb.exceptions import ConfigurationError, StorageError
from backupdb.storage.backends.base import Backend, StorageType
from backupdb.utils.converters import format_date


class S3Backend(Backend):
    """
    S3 backend. Works with AWS and S3 compatible services (Backblaze B2, Wasabi, MinIO).
    """

    storage_type = StorageType.S3

    def __init__(self, s3_bucket: str, s3_prefix: str = 'DatabaseBackups/',
                 s3_endpoint: Optional[str] = None, s3_region: Optional[str] = None,
                 s3_access_key_id: Optional[str] = None,
                 s3_secret_access_key: Optional[str] = None):
        """
        :param s3_bucket: name of the bucket
        :param s3_prefix: key prefix for all uploads
        :param s3_endpoint: endpoint url. None for AWS
        :param s3_region: region name
        :param s3_access_key_id: default: AWS_ACCESS_KEY_ID
        :param s3_secret_access_key: default: AWS_SECRET_ACCESS_KEY
        """
        self._s3_bucket = s3_bucket
        self._s3_prefix = s3_prefix or ''
        self._s3_endpoint = s3_endpoint or None
        self._s3_region = s3_region or None
        self._s3_access_key_id = s3_access_key_id or os.environ.get('AWS_ACCESS_KEY_ID')
        self._s3_secret_access_key = (s3_secret_access_key
                                      or os.environ.get('AWS_SECRET_ACCESS_KEY'))
        self._bucket = None

    @property
    def bucket(self):
        """
        Lazily created bucket resource.
        """
        if self._bucket is None:
            s3 = boto3.resource(
                's3',
                endpoint_url=self._s3_endpoint,
                region_name=self._s3_region,
                aws_access_key_id=self._s3_access_key_id,
                aws_secret_access_key=self._s3_secret_access_key,
            )
            self._bucket = s3.Bucket(self._s3_bucket)
        return self._bucket

    def validate(self, test_connection: bool = False) -> None:
        if not self._s3_bucket:
            raise ConfigurationError(
                'S3 bucket not configured. Set VGX_DB_S3_BUCKET environment variable.')
        if not self._s3_access_key_id or not self._s3_secret_access_key:
            raise ConfigurationError(
                'S3 credentials not configured. '
                'Set AWS_ACCESS_KEY_ID and AWS_SECRET_ACCESS_KEY.')
        if test_connection:
            logger.info('Testing S3 connection...')
            try:
                self.bucket.meta.client.head_bucket(Bucket=self._s3_bucket)
            except (BotoCoreError, ClientError) as e:
                logger.debug(f'head_bucket failed: {e}')
                raise ConfigurationError(
                    'S3 connection failed. Check credentials and endpoint.') from e

    def target_prefix(self, today: date) -> str:
        """
        <prefix><YYYYMMDD>/
        """
        return f'{self._s3_prefix}{format_date(today)}/'

    def upload(self, backup_dir: Path, today: date) -> None:
        prefix = self.target_prefix(today)
        logger.info(f'Uploading to S3 storage: s3://{self._s3_bucket}/{prefix}')
        for path in sorted(backup_dir.rglob('*')):
            if not path.is_file():
                continue
            key = prefix + path.relative_to(backup_dir).as_posix()
            logger.debug(f'Uploading {path} -> {key}')
            try:
                self.bucket.upload_file(str(path), key)
            except (BotoCoreError, ClientError, S3UploadFailedError) as e:
                raise StorageError(f'S3 upload of {path.name} failed: {e}') from e
        logger.success('S3 upload completed.')

    def summary(self) -> Dict[str, str]:
        return {
            'S3 Bucket': self._s3_bucket,
            'S3 Prefix': self._s3_prefix,
            'S3 Endpoint': self._s3_endpoint or 'AWS Default',
        }
