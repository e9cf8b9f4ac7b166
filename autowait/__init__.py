"""autowait: locator resolution and auto-waiting browser automation engine."""

from autowait.api import APIRequestContext, APIResponse
from autowait.assertions import LocatorAssertions, PageAssertions, expect
from autowait.browser import BrowserManager
from autowait.config import EngineConfig
from autowait.dialogs import Dialog
from autowait.drivers import BaseDriver
from autowait.drivers.memory import MemoryDriver
from autowait.drivers.playwright import PlaywrightDriver
from autowait.events import EventKind
from autowait.exceptions import (
    ActionTimeoutError,
    APIResponseError,
    AutoWaitError,
    BrowserError,
    ContextClosedError,
    DriverError,
    EventWaitTimeoutError,
    ExpectationError,
    NavigationInterruptedError,
    SelectorSyntaxError,
)
from autowait.locator import Locator, RootLocator
from autowait.logger import configure_logging
from autowait.models import Request, Response, Selector
from autowait.page import Page
from autowait.routing import Route

__version__ = "0.1.0"

__all__ = [
    "APIRequestContext",
    "APIResponse",
    "APIResponseError",
    "ActionTimeoutError",
    "AutoWaitError",
    "BaseDriver",
    "BrowserError",
    "BrowserManager",
    "ContextClosedError",
    "Dialog",
    "DriverError",
    "EngineConfig",
    "EventKind",
    "EventWaitTimeoutError",
    "ExpectationError",
    "Locator",
    "LocatorAssertions",
    "MemoryDriver",
    "NavigationInterruptedError",
    "Page",
    "PageAssertions",
    "PlaywrightDriver",
    "Request",
    "Response",
    "Route",
    "RootLocator",
    "Selector",
    "SelectorSyntaxError",
    "__version__",
    "configure_logging",
    "expect",
]
