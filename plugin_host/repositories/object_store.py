"""
Object store repository restricted to a plugin's allowed buckets.
"""

from typing import TYPE_CHECKING, Callable, List, Optional, Union

from ..core.interfaces.repositories import IObjectStoreRepository
from ..core.interfaces.services import IObjectStoreService

if TYPE_CHECKING:
    from ..plugins.access import ResourceScope


class ObjectStoreRepository(IObjectStoreRepository):
    """Every operation takes an explicit bucket; there is no default bucket."""

    def __init__(self, service: IObjectStoreService, scope: "ResourceScope",
                 guard: Optional[Callable[[], None]] = None):
        self._service = service
        self._scope = scope
        self._guard = guard

    def _bucket(self, bucket: str) -> str:
        if self._guard is not None:
            self._guard()
        return self._scope.check(bucket)

    async def upload(self, bucket: str, key: str, body: Union[bytes, str],
                     content_type: Optional[str] = None) -> None:
        await self._service.upload(self._bucket(bucket), key, body, content_type)

    async def download(self, bucket: str, key: str) -> bytes:
        return await self._service.download(self._bucket(bucket), key)

    async def delete(self, bucket: str, key: str) -> None:
        await self._service.delete(self._bucket(bucket), key)

    async def list(self, bucket: str, prefix: Optional[str] = None) -> List[str]:
        return await self._service.list(self._bucket(bucket), prefix)

    async def exists(self, bucket: str, key: str) -> bool:
        return await self._service.exists(self._bucket(bucket), key)

    async def get_presigned_url(self, bucket: str, key: str, expires_in: int = 3600) -> str:
        return await self._service.get_presigned_url(self._bucket(bucket), key, expires_in)

    def get_allowed_buckets(self) -> List[str]:
        if self._guard is not None:
            self._guard()
        return self._scope.allowed()
