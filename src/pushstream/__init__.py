"""pushstream: minimal push-based reactive streams for Python."""

from importlib.metadata import version as _version

__version__ = _version("pushstream")

from pushstream.observer import Observer, Subscription
from pushstream.stream import Stream
from pushstream.operators import map_, filter_, debounce_time, with_latest_from
from pushstream.sources import (
    EventSource,
    EventTarget,
    from_event,
    from_timer,
    from_interval,
    from_async_iterable,
)
from pushstream.scheduler import (
    Scheduler,
    ThreadingScheduler,
    AsyncioScheduler,
    VirtualScheduler,
    set_scheduler,
    get_scheduler,
)

__all__ = [
    "Stream",
    "Observer",
    "Subscription",
    "map_",
    "filter_",
    "debounce_time",
    "with_latest_from",
    "EventSource",
    "EventTarget",
    "from_event",
    "from_timer",
    "from_interval",
    "from_async_iterable",
    "Scheduler",
    "ThreadingScheduler",
    "AsyncioScheduler",
    "VirtualScheduler",
    "set_scheduler",
    "get_scheduler",
]
