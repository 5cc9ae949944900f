# dkprice/scrapers/network_observer.py

"""Spot the ``_rch`` token in outgoing API calls made by the host.

The host's network primitive is the ``request`` method of an HTTP session
(``curl_cffi.requests.Session`` or ``AsyncSession``).  At most one wrapper
is installed per session method per process; every ``observe()`` call adds
a listener to that wrapper instead of stacking another one.  Each listener
keeps its own API host.  Detaching the last listener puts the original
method back.
"""

import logging
import threading
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any
from urllib.parse import urlparse

from dkprice.config.settings import Settings
from dkprice.scrapers.token_locator import is_valid_token, token_from_url

logger = logging.getLogger("dkprice.network_observer")

TokenCallback = Callable[[str], None]

_registry_lock = threading.Lock()
_interceptors: dict[tuple[int, str], "_Interceptor"] = {}


def request_url(args: tuple[Any, ...], kwargs: dict[str, Any]) -> str:
    """Pull the target URL out of ``request(method, url, ...)`` arguments."""
    target: Any = kwargs.get("url")
    if target is None and len(args) >= 2:
        target = args[1]
    if target is None:
        return ""
    if isinstance(target, str):
        return target
    # Request-like objects expose .url; URL objects stringify
    return str(getattr(target, "url", target))


def request_params(args: tuple[Any, ...], kwargs: dict[str, Any]) -> Any:
    """The ``params`` argument of ``request(method, url, params, ...)``."""
    if "params" in kwargs:
        return kwargs["params"]
    return args[2] if len(args) >= 3 else None


def token_from_params(params: Any) -> str | None:
    """Read ``_rch`` from a mapping or a sequence of ``(key, value)`` pairs."""
    if not params or isinstance(params, (str, bytes)):
        return None
    if isinstance(params, Mapping):
        pairs = list(params.items())
    else:
        pairs = [p for p in params if isinstance(p, (tuple, list))]
    for pair in pairs:
        if len(pair) != 2 or pair[0] != Settings.TOKEN_PARAM:
            continue
        values = pair[1] if isinstance(pair[1], (list, tuple)) else [pair[1]]
        for value in values:
            if is_valid_token(value):
                return str(value)
    return None


def token_in_api_call(
    url: str, api_host: str, params: Any = None,
) -> str | None:
    """Return the token if *url* is an API call carrying one.

    The token may sit in the URL itself or in the separate ``params``
    the session merges into the query string.
    """
    if urlparse(url).hostname != api_host:
        return None
    return token_from_url(url) or token_from_params(params)


@dataclass(eq=False)
class _Listener:
    api_host: str
    callback: TokenCallback


@dataclass
class _Interceptor:
    """The single wrapper installed on one transport method."""

    transport: Any
    method_name: str
    original: Callable[..., Any]
    shadowed: bool = False
    listeners: list[_Listener] = field(
        default_factory=lambda: list[_Listener]()
    )

    @property
    def key(self) -> tuple[int, str]:
        return (id(self.transport), self.method_name)

    def wrapper(self, *args: Any, **kwargs: Any) -> Any:
        """Inspect, notify, then forward untouched."""
        try:
            url = request_url(args, kwargs)
            params = request_params(args, kwargs)
        except Exception as exc:
            logger.debug("Could not inspect outgoing call: %s", exc)
            url, params = "", None
        for listener in list(self.listeners):
            try:
                token = token_in_api_call(url, listener.api_host, params)
            except Exception as exc:
                logger.debug("Could not inspect outgoing call: %s", exc)
                continue
            if token is None:
                continue
            logger.info(
                "Intercepted _rch token from %s request", listener.api_host,
            )
            try:
                listener.callback(token)
            except Exception as exc:
                logger.error(
                    "Token listener raised: %s", exc, exc_info=True,
                )
        return self.original(*args, **kwargs)

    def install(self) -> None:
        setattr(self.transport, self.method_name, self.wrapper)

    def uninstall(self) -> None:
        if self.shadowed:
            setattr(self.transport, self.method_name, self.original)
        else:
            delattr(self.transport, self.method_name)


class ObserverHandle:
    """Returned by :meth:`NetworkTokenObserver.observe`; call ``detach()``."""

    def __init__(
        self, interceptor: _Interceptor, listener: _Listener,
    ) -> None:
        self._interceptor = interceptor
        self._listener = listener
        self.attached = True

    def detach(self) -> None:
        """Stop receiving tokens; safe to call more than once."""
        if not self.attached:
            return
        self.attached = False
        interceptor = self._interceptor
        with _registry_lock:
            if self._listener in interceptor.listeners:
                interceptor.listeners.remove(self._listener)
            if not interceptor.listeners:
                interceptor.uninstall()
                _interceptors.pop(interceptor.key, None)
                logger.debug(
                    "Network interceptor removed from %r.%s",
                    interceptor.transport,
                    interceptor.method_name,
                )


class NetworkTokenObserver:
    """Reports tokens seen in the host's calls to the product API."""

    def __init__(
        self,
        transport: Any,
        api_host: str | None = None,
        method_name: str = "request",
    ) -> None:
        self.transport = transport
        self.api_host = api_host or Settings.API_HOST
        self.method_name = method_name
        self.install_count = 0

    def _interceptor(self) -> _Interceptor:
        """Return the transport method's interceptor, installing it once."""
        key = (id(self.transport), self.method_name)
        existing = _interceptors.get(key)
        if existing is not None:
            return existing
        interceptor = _Interceptor(
            transport=self.transport,
            method_name=self.method_name,
            original=getattr(self.transport, self.method_name),
            shadowed=self.method_name in vars(self.transport),
        )
        interceptor.install()
        _interceptors[key] = interceptor
        self.install_count += 1
        logger.debug(
            "Network interceptor installed on %r.%s",
            self.transport,
            self.method_name,
        )
        return interceptor

    def observe(self, on_found: TokenCallback) -> ObserverHandle:
        """Call *on_found* for every intercepted token until detached.

        The callback may fire many times and from any thread; callers
        guard against acting twice.
        """
        listener = _Listener(api_host=self.api_host, callback=on_found)
        with _registry_lock:
            interceptor = self._interceptor()
            interceptor.listeners.append(listener)
        return ObserverHandle(interceptor, listener)


def installed_interceptor_count() -> int:
    """Number of transport methods currently wrapped in this process."""
    with _registry_lock:
        return len(_interceptors)
