"""
S3 compatible object store service.

boto3 is synchronous, so every call runs in the default executor.
"""

import asyncio
import functools
import logging
from typing import Any, Callable, Dict, List, Optional, Union

import boto3
from botocore.client import Config as BotoConfig
from botocore.exceptions import BotoCoreError, ClientError

from ..config.models import ObjectStoreConfig
from ...core.interfaces.lifecycle import IComponent
from ...core.interfaces.services import IObjectStoreService

logger = logging.getLogger(__name__)


class S3ObjectStoreService(IComponent, IObjectStoreService):

    def __init__(self, config: ObjectStoreConfig, client: Any = None) -> None:
        self._config = config
        self._client = client

    @property
    def name(self) -> str:
        return "S3ObjectStoreService"

    def _get_client(self) -> Any:
        if self._client is None:
            self._client = boto3.client(
                "s3",
                endpoint_url=self._config.endpoint_url,
                region_name=self._config.region,
                aws_access_key_id=self._config.access_key_id,
                aws_secret_access_key=self._config.secret_access_key,
                config=BotoConfig(
                    s3={'addressing_style': 'path' if self._config.force_path_style else 'auto'}
                ),
            )
        return self._client

    async def _run(self, func: Callable[..., Any], **kwargs: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, functools.partial(func, **kwargs))

    async def start(self) -> None:
        self._get_client()
        logger.info(f"S3 service initialized - Endpoint: {self._config.endpoint_url or 'AWS'}")

    async def stop(self) -> None:
        self._client = None
        logger.info("S3 service stopped")

    async def check_health(self) -> Dict[str, Any]:
        try:
            await self._run(self._get_client().list_buckets)
        except (BotoCoreError, ClientError) as e:
            return {'healthy': False, 'status': 'error', 'details': {'error': str(e)}}
        return {
            'healthy': True,
            'status': 'running',
            'details': {'endpoint': self._config.endpoint_url, 'region': self._config.region}
        }

    async def upload(self, bucket: str, key: str, body: Union[bytes, str],
                     content_type: Optional[str] = None) -> None:
        if isinstance(body, str):
            body = body.encode('utf-8')
        params: Dict[str, Any] = {'Bucket': bucket, 'Key': key, 'Body': body}
        if content_type:
            params['ContentType'] = content_type
        await self._run(self._get_client().put_object, **params)
        logger.debug(f"Uploaded {key} to bucket {bucket}")

    async def download(self, bucket: str, key: str) -> bytes:
        response = await self._run(self._get_client().get_object, Bucket=bucket, Key=key)
        body = response['Body']
        try:
            return await self._run(body.read)
        finally:
            body.close()

    async def delete(self, bucket: str, key: str) -> None:
        await self._run(self._get_client().delete_object, Bucket=bucket, Key=key)
        logger.debug(f"Deleted {key} from bucket {bucket}")

    async def list(self, bucket: str, prefix: Optional[str] = None) -> List[str]:
        params: Dict[str, Any] = {'Bucket': bucket}
        if prefix:
            params['Prefix'] = prefix

        keys: List[str] = []
        while True:
            response = await self._run(self._get_client().list_objects_v2, **params)
            keys.extend(item['Key'] for item in response.get('Contents', []))
            if not response.get('IsTruncated'):
                return keys
            params['ContinuationToken'] = response['NextContinuationToken']

    async def exists(self, bucket: str, key: str) -> bool:
        try:
            await self._run(self._get_client().head_object, Bucket=bucket, Key=key)
        except ClientError as e:
            code = e.response.get('Error', {}).get('Code')
            if code in ('404', 'NoSuchKey', 'NotFound'):
                return False
            raise
        return True

    async def get_presigned_url(self, bucket: str, key: str, expires_in: int = 3600) -> str:
        return await self._run(
            self._get_client().generate_presigned_url,
            ClientMethod='get_object',
            Params={'Bucket': bucket, 'Key': key},
            ExpiresIn=expires_in,
        )
