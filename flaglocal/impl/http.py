import ssl

import aiohttp
import certifi

from flaglocal.version import VERSION

LOCAL_EVALUATION_PATH = '/api/feature_flag/local_evaluation'


def _base_headers(config):
    headers = {'User-Agent': 'flaglocal-python/' + VERSION}
    headers.update(config.http.custom_headers)
    return headers


def _definitions_headers(config, etag=None):
    headers = _base_headers(config)
    headers.update({'Content-Type': 'application/json', 'Authorization': 'Bearer %s' % (config.personal_api_key or '')})
    if etag is not None:
        headers['If-None-Match'] = etag
    return headers


def _definitions_uri(config):
    return config.host + LOCAL_EVALUATION_PATH


def _client_timeout(http_config) -> aiohttp.ClientTimeout:
    return aiohttp.ClientTimeout(connect=http_config.connect_timeout, sock_read=http_config.read_timeout)


def _create_session(http_config) -> aiohttp.ClientSession:
    ssl_context = ssl.create_default_context(cafile=certifi.where())
    return aiohttp.ClientSession(connector=aiohttp.TCPConnector(ssl=ssl_context), timeout=_client_timeout(http_config))
