"""
Request interceptors for gateway endpoints.

An interceptor receives the request and a ``call_next`` callable for the
next stage. It either awaits ``call_next(request)`` or short-circuits with
its own response. Interceptors run in the order they are given to the chain,
with the endpoint as the final stage.
"""
from abc import ABC, abstractmethod
from functools import partial
from typing import Awaitable, Callable, Sequence
from starlette.requests import Request
from starlette.responses import Response

Endpoint = Callable[[Request], Awaitable[Response]]


class Interceptor(ABC):
    """A single stage in front of an endpoint."""

    @abstractmethod
    async def dispatch(self, request: Request, call_next: Endpoint) -> Response:
        pass


class InterceptorChain:
    """An ordered sequence of interceptors in front of an endpoint."""

    def __init__(self, interceptors: Sequence[Interceptor] = ()):
        self._interceptors = tuple(interceptors)

    @property
    def interceptors(self) -> tuple[Interceptor, ...]:
        return self._interceptors

    def wrap(self, endpoint: Endpoint) -> Endpoint:
        """Compose the chain around an endpoint."""
        handler = endpoint
        for interceptor in reversed(self._interceptors):
            handler = partial(interceptor.dispatch, call_next=handler)
        return handler

    async def __call__(self, request: Request, endpoint: Endpoint) -> Response:
        return await self.wrap(endpoint)(request)
