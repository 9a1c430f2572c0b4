"""
The flaglocal module contains the most common top-level entry points for the SDK.
"""

from flaglocal.impl.util import log
from flaglocal.version import VERSION

from .client import *
from .config import Config, HTTPConfig
from .context import EvaluationContext
from .errors import (CacheProviderError, CacheReadError, CacheShutdownError,
                     CacheWriteError, ClientError, CoordinationError,
                     CyclicDependencyError, DependencyGraphError,
                     FlagEvaluationError, FlagLocalError,
                     InvalidResponseError)
from .interfaces import (DefinitionsLoadedEvent, FeatureRequester,
                         FetchResponse, FlagDefinitionCacheData,
                         FlagDefinitionCacheProvider)

__version__ = VERSION
