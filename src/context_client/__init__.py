"""Aggregates items and annotations from configurable context providers."""

__all__ = [
    "__version__",
    "Annotation",
    "AnnotationsParams",
    "AuthInfo",
    "Client",
    "ClientEnv",
    "ClientSettings",
    "ConfigurationUserInput",
    "FileConfigurationSource",
    "Item",
    "ItemsParams",
    "Logger",
    "ProviderError",
    "ResultAggregator",
    "create_client",
    "observe_annotations",
    "observe_items",
]
__version__ = "0.1.0"

from .aggregator import ResultAggregator, observe_annotations, observe_items
from .client import Client, ClientEnv, create_client
from .config import ClientSettings
from .configuration import ConfigurationUserInput
from .errors import ProviderError
from .logger import Logger
from .models import Annotation, AnnotationsParams, AuthInfo, Item, ItemsParams
from .sources import FileConfigurationSource
