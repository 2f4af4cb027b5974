"""
GitHub Dispatch
Forwards content publish/unpublish notifications from a CMS host to the GitHub
repository_dispatch API, one request per content item, without blocking the host.
"""

import logging
import threading
from concurrent import futures
from functools import partial
from typing import Any, Callable, Iterable, Optional, Set

from dispatch_core import config_utils as cu
from dispatch_core import metrics_utils as mu
from dispatch_core import notify_utils as nu
from dispatch_core.models import CONTENT_PUBLISHED, CONTENT_UNPUBLISHED, ChangeEvent


class GitHubDispatcher:
    """Sends repository_dispatch events for changed content."""

    def __init__(
        self,
        config_file: Optional[str] = None,
        session=None,
        executor: Optional[futures.Executor] = None,
        logger: Optional[logging.Logger] = None,
        env_file: Optional[str] = None,
    ):
        self.logger = logger or logging.getLogger(__name__)
        self.config_file = config_file
        cu.load_env_file(env_file, self.logger)
        self.settings = cu.load_settings()

        self._owns_session = session is None
        self.session = session if session is not None else nu.create_session()
        self._owns_executor = executor is None
        self.executor = executor if executor is not None else futures.ThreadPoolExecutor(
            max_workers=self.settings.max_workers,
            thread_name_prefix='github-dispatch',
        )

        self._pending: Set[futures.Future] = set()
        self._lock = threading.Condition()
        self._closed = False
        self.init_metrics()

    def init_metrics(self):
        m = mu.init_metrics(self.logger)
        self.metrics_enabled = m['enabled']
        self.counter_sent = m['sent']
        self.counter_failed = m['failed']
        self.counter_skipped = m['skipped']

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close(wait=True)

    def handle_published(self, notification) -> None:
        self.dispatch(notification.published_entities, CONTENT_PUBLISHED)

    def handle_unpublished(self, notification) -> None:
        self.dispatch(notification.unpublished_entities, CONTENT_UNPUBLISHED)

    def dispatch(self, contents: Iterable[Any], event_type: str) -> None:
        """Send one repository_dispatch request per content item.

        Returns as soon as every request has been handed to the executor.
        Outcomes are only ever logged; nothing is raised to the caller.
        """
        try:
            target = cu.load_target(self.config_file)
        except cu.ConfigError as e:
            self.logger.warning(f"GitHubDispatcher: Invalid configuration, skipping dispatch: {e}")
            mu.inc(self.counter_skipped)
            return
        if not target.is_complete():
            self.logger.warning("GitHubDispatcher: Missing configuration for Owner/Repo/Token.")
            mu.inc(self.counter_skipped)
            return

        for content in contents:
            try:
                event = ChangeEvent.from_content(event_type, content)
                future = self._submit(target, event)
            except Exception as e:
                name = getattr(content, 'name', None)
                content_id = getattr(content, 'id', None)
                self.logger.error(
                    f"GitHubDispatcher: Exception while dispatching '{event_type}' for content {name} ({content_id})",
                    exc_info=e,
                    extra={'event_type': event_type, 'content_id': content_id, 'content_name': name},
                )
                mu.inc(self.counter_failed)
                continue
            future.add_done_callback(partial(self._on_complete, event))

    def _submit(self, target, event: ChangeEvent) -> futures.Future:
        with self._lock:
            if self._closed:
                raise RuntimeError('dispatcher is closed')
            future = self.executor.submit(
                nu.send_event,
                self.session,
                target,
                event,
                self.settings.user_agent,
                self.settings.timeout,
            )
            self._pending.add(future)
        return future

    def _on_complete(self, event: ChangeEvent, future: futures.Future) -> None:
        try:
            self._report(event, future)
        finally:
            with self._lock:
                self._pending.discard(future)
                self._lock.notify_all()

    def _report(self, event: ChangeEvent, future: futures.Future) -> None:
        if future.cancelled():
            self.logger.debug(
                f"GitHubDispatcher: Abandoned '{event.event_type}' for content {event.content_name} ({event.content_id})",
                extra=event.log_extra(),
            )
            return
        exc = future.exception()
        if exc is None:
            self.logger.info(
                f"GitHubDispatcher: Successfully dispatched '{event.event_type}' for content {event.content_name} ({event.content_id})",
                extra=event.log_extra(),
            )
            mu.inc(self.counter_sent)
        else:
            self.logger.error(
                f"GitHubDispatcher: Failed to dispatch '{event.event_type}' for content {event.content_name} ({event.content_id}): {exc}",
                exc_info=exc,
                extra=event.log_extra(),
            )
            mu.inc(self.counter_failed)

    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def close(self, wait: bool = True) -> None:
        """Stop accepting dispatches and drain (wait=True) or abandon queued sends.

        Requests already on the wire always run to completion.
        """
        with self._lock:
            if self._closed:
                return
            self._closed = True
            outstanding = list(self._pending)

        if wait:
            # Pending entries are removed only after their outcome is logged
            with self._lock:
                while self._pending:
                    self._lock.wait()
        else:
            abandoned = sum(1 for f in outstanding if f.cancel())
            if outstanding:
                self.logger.warning(
                    f"GitHubDispatcher: Closing with {len(outstanding)} pending dispatches ({abandoned} abandoned)"
                )

        if self._owns_executor:
            self.executor.shutdown(wait=wait)
        if self._owns_session and wait:
            self.session.close()


def register_handlers(dispatcher: GitHubDispatcher, subscribe: Callable[[str, Callable], Any]) -> None:
    """Wire the dispatcher into a host's notification subscription hook."""
    subscribe(CONTENT_PUBLISHED, dispatcher.handle_published)
    subscribe(CONTENT_UNPUBLISHED, dispatcher.handle_unpublished)
