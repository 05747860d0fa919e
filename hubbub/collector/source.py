"""Pod watch subscriptions.

``PodEventSource.subscribe`` opens a watch on every pod in a namespace and
returns a ``PodSubscription``; ``next_event`` blocks until the next event
and returns None once the stream has ended for any reason. The watcher
re-subscribes on None, so stream-level errors are logged here and never
raised.

Errors while *opening* a subscription are different: they point at
credentials, RBAC or an unknown namespace and are raised as
``SubscriptionError``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Protocol

import aiohttp
from kubernetes_asyncio import watch
from kubernetes_asyncio.client.rest import ApiException

from hubbub.observability.logging import get_logger

_logger = get_logger("collector.source")

_STREAM_ERRORS = (ApiException, aiohttp.ClientError, asyncio.TimeoutError)


class SubscriptionError(RuntimeError):
    """Raised when a pod watch subscription cannot be opened."""


@dataclass(frozen=True)
class WatchEvent:
    """One watch notification: ``ADDED``, ``MODIFIED``, ``DELETED`` or ``ERROR``.

    ``obj`` is the raw JSON object carried by the event, or None when the
    event had no payload.
    """

    type: str
    obj: dict[str, Any] | None


class PodSubscription(Protocol):
    async def next_event(self) -> WatchEvent | None: ...

    async def close(self) -> None: ...


class PodEventSource(Protocol):
    async def subscribe(self, namespace: str) -> PodSubscription: ...


def _to_watch_event(raw_event: Any) -> WatchEvent:
    # Watch.unmarshal_event hands back the undecoded line when it is not JSON.
    if not isinstance(raw_event, dict):
        return WatchEvent(type="", obj=None)
    obj = raw_event.get("raw_object")
    if not isinstance(obj, dict):
        obj = None
    return WatchEvent(type=str(raw_event.get("type", "")), obj=obj)


class KubernetesPodSubscription:
    """A live ``list_namespaced_pod`` watch stream."""

    def __init__(self, watcher: watch.Watch, stream: Any, first: WatchEvent | None) -> None:
        self._watch = watcher
        self._stream = stream
        self._pending = first
        self._closed = first is None

    async def next_event(self) -> WatchEvent | None:
        if self._pending is not None:
            event, self._pending = self._pending, None
            return event
        if self._closed:
            return None
        try:
            raw_event = await self._stream.__anext__()
        except StopAsyncIteration:
            _logger.debug("watch_stream_ended")
            self._closed = True
            return None
        except _STREAM_ERRORS as exc:
            _logger.warning("watch_stream_error", error=str(exc), error_type=type(exc).__name__)
            self._closed = True
            return None
        except Exception as exc:
            # Undecodable events (missing type/object, bad model data) end the
            # stream; the watcher re-subscribes instead of dying.
            _logger.warning("watch_event_malformed", error=str(exc), error_type=type(exc).__name__)
            self._closed = True
            return None
        return _to_watch_event(raw_event)

    async def close(self) -> None:
        self._closed = True
        self._watch.stop()
        await self._watch.close()


class KubernetesPodEventSource:
    """Opens pod watches through a kubernetes-asyncio ``CoreV1Api``.

    Args:
        core_v1:         ``kubernetes_asyncio.client.CoreV1Api`` instance.
        timeout_seconds: Server-side watch timeout. None leaves the server
                         default in place; the stream is re-opened either way.
    """

    def __init__(self, core_v1: Any, timeout_seconds: int | None = None) -> None:
        self._core_v1 = core_v1
        self._timeout_seconds = timeout_seconds

    async def subscribe(self, namespace: str) -> KubernetesPodSubscription:
        """Open a watch on all pods in *namespace*, with no label or field selector.

        The first event is read eagerly so that request-level failures
        surface here rather than mid-stream.

        Raises:
            SubscriptionError: if the watch request is rejected or the API
                server cannot be reached.
        """
        kwargs: dict[str, Any] = {"namespace": namespace}
        if self._timeout_seconds is not None:
            kwargs["timeout_seconds"] = self._timeout_seconds

        watcher = watch.Watch()
        stream = watcher.stream(self._core_v1.list_namespaced_pod, **kwargs)
        try:
            first: WatchEvent | None = _to_watch_event(await stream.__anext__())
        except StopAsyncIteration:
            first = None
        except _STREAM_ERRORS as exc:
            await watcher.close()
            raise SubscriptionError(f"Cannot create pod event watcher for namespace {namespace!r}: {exc}") from exc
        except Exception as exc:
            # The request was accepted; only its first event was bad.
            _logger.warning("watch_event_malformed", error=str(exc), error_type=type(exc).__name__)
            first = None
        _logger.debug("watch_subscription_opened", namespace=namespace)
        return KubernetesPodSubscription(watcher, stream, first)


async def load_kube_client() -> Any:
    """Load in-cluster credentials, falling back to kubeconfig, and return a CoreV1Api."""
    import kubernetes_asyncio.config as k8s_config  # type: ignore[import-untyped]
    from kubernetes_asyncio import client as k8s_client  # type: ignore[import-untyped]

    try:
        k8s_config.load_incluster_config()
        _logger.info("k8s client configured from in-cluster service account")
    except k8s_config.ConfigException:
        await k8s_config.load_kube_config()
        _logger.info("k8s client configured from kubeconfig")
    return k8s_client.CoreV1Api()
