"""URL matching and the Route Interceptor."""

from __future__ import annotations

import inspect
import json as jsonlib
import re
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Union

from autowait.exceptions import DriverError
from autowait.logger import get_logger
from autowait.models import Request, RouteAction, RouteDecision

log = get_logger(__name__)

URLPattern = Union[str, re.Pattern[str], Callable[[str], bool]]
RouteHandler = Callable[["Route"], Any]


def glob_to_regex(glob: str) -> re.Pattern[str]:
    """Translate a URL glob: ``**`` any run, ``*`` no slash, ``{a,b}`` alternatives."""
    out = ["^"]
    in_group = False
    i = 0
    while i < len(glob):
        ch = glob[i]
        if ch == "*":
            if glob.startswith("**", i):
                out.append(".*")
                i += 2
                continue
            out.append("[^/]*")
        elif ch == "{":
            in_group = True
            out.append("(?:")
        elif ch == "}" and in_group:
            in_group = False
            out.append(")")
        elif ch == "," and in_group:
            out.append("|")
        elif ch == "\\" and i + 1 < len(glob):
            out.append(re.escape(glob[i + 1]))
            i += 2
            continue
        else:
            out.append(re.escape(ch))
        i += 1
    out.append("$")
    return re.compile("".join(out))


def url_matcher(pattern: URLPattern) -> Callable[[str], bool]:
    """Predicate over URLs for a glob string, compiled regex or callable."""
    if callable(pattern) and not isinstance(pattern, re.Pattern):
        return pattern
    if isinstance(pattern, re.Pattern):
        return lambda url: pattern.search(url) is not None
    regex = glob_to_regex(pattern)
    return lambda url: regex.match(url) is not None


class Route:
    """One intercepted request handed to a route handler.

    The handler decides with exactly one of :meth:`fulfill`,
    :meth:`continue_`, :meth:`abort` or :meth:`fallback`.
    """

    def __init__(self, request: Request) -> None:
        self.request = request
        self.decision: RouteDecision | None = None
        self.fell_back = False

    @property
    def handled(self) -> bool:
        return self.decision is not None or self.fell_back

    def _decide(self, decision: RouteDecision) -> None:
        if self.handled:
            raise DriverError("Route is already handled")
        self.decision = decision

    async def fulfill(
        self,
        status: int = 200,
        body: str | bytes | None = None,
        json: Any = None,
        headers: dict[str, str] | None = None,
        content_type: str | None = None,
    ) -> None:
        """Answer the request with a synthetic response."""
        headers = dict(headers or {})
        if json is not None:
            body = jsonlib.dumps(json)
            content_type = content_type or "application/json"
        if content_type:
            headers["content-type"] = content_type
        if isinstance(body, str):
            body = body.encode("utf-8")
        self._decide(
            RouteDecision(action=RouteAction.FULFILL, status=status, headers=headers, body=body)
        )

    async def continue_(
        self,
        url: str | None = None,
        method: str | None = None,
        headers: dict[str, str] | None = None,
        post_data: str | None = None,
    ) -> None:
        """Send the request on to the network, optionally modified."""
        self._decide(
            RouteDecision(
                action=RouteAction.CONTINUE,
                url=url,
                method=method,
                headers=headers or {},
                post_data=post_data,
            )
        )

    async def abort(self, error_code: str = "failed") -> None:
        self._decide(RouteDecision(action=RouteAction.ABORT, error_code=error_code))

    async def fallback(self) -> None:
        """Pass the request to the next matching route."""
        if self.handled:
            raise DriverError("Route is already handled")
        self.fell_back = True


@dataclass
class RouteRule:
    pattern: URLPattern
    handler: RouteHandler
    matches: Callable[[str], bool]
    times: int | None = None
    calls: int = 0

    @property
    def exhausted(self) -> bool:
        return self.times is not None and self.calls >= self.times


class RouteInterceptor:
    """Ordered pattern -> handler rules; the first registered match wins.

    Requests that match no rule, or whose handlers all fall back, continue
    to the network unmodified.
    """

    def __init__(self) -> None:
        self._rules: list[RouteRule] = []

    @property
    def rules(self) -> list[RouteRule]:
        return list(self._rules)

    def __len__(self) -> int:
        return len(self._rules)

    def add(self, pattern: URLPattern, handler: RouteHandler, times: int | None = None) -> None:
        self._rules.append(RouteRule(pattern, handler, url_matcher(pattern), times))
        log.debug("route_added", pattern=str(pattern), rules=len(self._rules))

    def remove(self, pattern: URLPattern, handler: RouteHandler | None = None) -> int:
        """Remove rules registered with ``pattern`` (and ``handler``, if given)."""
        before = len(self._rules)
        self._rules = [
            rule
            for rule in self._rules
            if not (rule.pattern == pattern and (handler is None or rule.handler == handler))
        ]
        removed = before - len(self._rules)
        log.debug("route_removed", pattern=str(pattern), removed=removed)
        return removed

    async def handle(self, request: Request) -> RouteDecision:
        for rule in list(self._rules):
            if rule.exhausted or not rule.matches(request.url):
                continue
            rule.calls += 1
            if rule.exhausted:
                self._rules.remove(rule)
            route = Route(request)
            result = rule.handler(route)
            if inspect.isawaitable(result):
                await result
            if route.decision is not None:
                log.debug(
                    "route_handled",
                    url=request.url,
                    pattern=str(rule.pattern),
                    action=route.decision.action.value,
                )
                return route.decision
        return RouteDecision(action=RouteAction.CONTINUE)
