"""Application shell — routes, identity and guard on one event queue.

Navigation events (from the router) and identity changes (from the
resolver) arrive on two independent streams. The shell funnels both into a
single FIFO queue, applies every queued event, and only then evaluates the
view guard against the settled ``(location, identity)`` pair. Two events
raised in the same tick therefore always resolve to the same final screen,
whatever order they arrived in.

A ``Redirect`` outcome navigates, which feeds another event into the
queue; a ``Render`` outcome publishes a ``Screen`` to subscribers.
"""

import logging
from collections import deque
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

from accountable.blog import BlogPost, get_post
from accountable.errors import ConfigurationError, NotFound
from accountable.guard import LANDING_PATH, Redirect, View, evaluate
from accountable.identity import Identity
from accountable.routing import Location, Router, Subscription

logger = logging.getLogger("accountable.shell")

# Longest redirect chain the guard table can legitimately produce is two
# hops (/dashboard -> /auth -> /admin); anything far beyond is a loop.
MAX_REDIRECTS = 8


@dataclass(frozen=True, slots=True)
class Screen:
    """What is on screen after the guard let a view render."""

    view: View
    location: Location
    identity: Identity
    post: BlogPost | None = None


@dataclass(frozen=True, slots=True)
class _Navigated:
    location: Location


@dataclass(frozen=True, slots=True)
class _IdentityChanged:
    identity: Identity


type _Event = _Navigated | _IdentityChanged
type ScreenListener = Callable[[Screen], None]


class IdentitySource(Protocol):
    """Where the shell reads identity from. ``IdentityResolver`` in the app."""

    @property
    def identity(self) -> Identity: ...

    def subscribe(self, listener: Callable[[Identity], None]) -> Subscription: ...


class StaticIdentity:
    """An identity that never changes, for previews and route inspection."""

    def __init__(self, identity: Identity) -> None:
        self.identity = identity

    def subscribe(self, listener: Callable[[Identity], None]) -> Subscription:
        return Subscription([], listener)


class AppShell:
    """Serialise navigation and identity changes, re-run the guard on each.

    Usage::

        shell = AppShell(router, resolver)
        shell.start()
        shell.navigate("/dashboard")
        shell.screen.view  # View.AUTH when signed out
    """

    __slots__ = (
        "_draining",
        "_hops",
        "_identity",
        "_listeners",
        "_location",
        "_queue",
        "_resolver",
        "_router",
        "_screen",
        "_subscriptions",
    )

    def __init__(self, router: Router, resolver: IdentitySource) -> None:
        self._router = router
        self._resolver = resolver
        self._queue: deque[_Event] = deque()
        self._draining = False
        self._hops = 0
        self._location = router.current_location()
        self._identity = resolver.identity
        self._screen: Screen | None = None
        self._listeners: list[ScreenListener] = []
        self._subscriptions: list[Subscription] = []

    @property
    def screen(self) -> Screen | None:
        """The last rendered screen; ``None`` before ``start()``."""
        return self._screen

    @property
    def identity(self) -> Identity:
        return self._identity

    @property
    def location(self) -> Location:
        return self._location

    def start(self) -> None:
        """Subscribe to both streams and evaluate the current location."""
        if self._subscriptions:
            return
        self._subscriptions = [
            self._router.subscribe(self._on_location),
            self._resolver.subscribe(self._on_identity),
        ]
        self._identity = self._resolver.identity
        self._enqueue(_Navigated(self._router.current_location()))

    def close(self) -> None:
        for subscription in self._subscriptions:
            subscription()
        self._subscriptions = []

    def subscribe(self, listener: ScreenListener) -> Subscription:
        """Register *listener* for every newly rendered screen."""
        self._listeners.append(listener)
        return Subscription(self._listeners, listener)

    def navigate(self, path: str) -> None:
        self._router.navigate(path)

    # -- Event queue ------------------------------------------------------

    def _on_location(self, location: Location) -> None:
        self._enqueue(_Navigated(location))

    def _on_identity(self, identity: Identity) -> None:
        self._enqueue(_IdentityChanged(identity))

    def _enqueue(self, event: _Event) -> None:
        self._queue.append(event)
        if self._draining:
            return

        self._draining = True
        try:
            while self._queue:
                while self._queue:
                    self._apply(self._queue.popleft())
                self._evaluate()
        finally:
            self._draining = False

    def _apply(self, event: _Event) -> None:
        match event:
            case _Navigated(location=location):
                self._location = location
            case _IdentityChanged(identity=identity):
                self._identity = identity

    # -- Guard ------------------------------------------------------------

    def _evaluate(self) -> None:
        location = self._location
        if not location.matched:
            logger.info("No route for %s", location.pathname)
            self._redirect(LANDING_PATH)
            return

        view = View(location.view)
        outcome = evaluate(view, self._identity)
        if isinstance(outcome, Redirect):
            self._redirect(outcome.to)
            return

        post = None
        if view is View.BLOG_POST:
            try:
                post = get_post(location.params.get("id", ""))
            except NotFound:
                logger.info("Unknown blog post at %s", location.pathname)
                self._redirect(LANDING_PATH)
                return

        self._hops = 0
        screen = Screen(view=view, location=location, identity=self._identity, post=post)
        if screen == self._screen:
            return
        self._screen = screen
        for listener in list(self._listeners):
            listener(screen)

    def _redirect(self, to: str) -> None:
        self._hops += 1
        if self._hops > MAX_REDIRECTS:
            self._hops = 0
            msg = f"Redirect loop while resolving {self._location.pathname!r}"
            raise ConfigurationError(msg)
        logger.debug("Redirect %s -> %s", self._location.pathname, to)
        self._router.navigate(to)
