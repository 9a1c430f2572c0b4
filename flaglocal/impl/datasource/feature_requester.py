"""
Default implementation of flag definition requests.
"""

from typing import Optional

import aiohttp

from flaglocal.config import Config
from flaglocal.impl.http import (_create_session, _definitions_headers,
                                 _definitions_uri)
from flaglocal.impl.util import log
from flaglocal.interfaces import FeatureRequester, FetchResponse


class FeatureRequesterImpl(FeatureRequester):
    def __init__(self, config: Config):
        self._config = config
        self._uri = _definitions_uri(config)
        self._params = {'token': config.project_api_key or '', 'send_cohorts': ''}
        self._session: Optional[aiohttp.ClientSession] = None

    def _get_session(self) -> aiohttp.ClientSession:
        # created on first use so that it binds to the loop the client runs on
        if self._session is None or self._session.closed:
            self._session = _create_session(self._config.http)
        return self._session

    async def get_flag_definitions(self, etag: Optional[str] = None) -> FetchResponse:
        headers = _definitions_headers(self._config, etag)
        async with self._get_session().get(self._uri, params=self._params, headers=headers) as response:
            new_etag = response.headers.get('ETag')
            data = None
            if response.status == 200:
                data = await response.json(encoding='UTF-8', content_type=None)
        log.debug("%s response status:[%d] ETag:[%s]", self._uri, response.status, new_etag)
        return FetchResponse(response.status, data, new_etag)

    async def close(self):
        if self._session is not None:
            await self._session.close()
            self._session = None
