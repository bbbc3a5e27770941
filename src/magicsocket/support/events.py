from queue import Queue


class EventSource(object):
    """
    A list of handlers that are each called with the arguments given to fire().
    Handlers are called in the order they were added.
    """

    def __init__(self):
        self._handlers = []

    def __iadd__(self, handler):
        return self.add(handler)

    def __isub__(self, handler):
        return self.remove(handler)

    def add(self, handler):
        self._handlers.append(handler)
        return self

    def remove(self, handler):
        if handler in self._handlers:
            self._handlers.remove(handler)
        return self

    def handlers(self):
        return tuple(self._handlers)

    def fire(self, *args, **kwargs):
        self._fire(*args, **kwargs)

    def fire_all(self, events):
        self._fire_all(events)

    def _fire_all(self, events):
        for e in events:
            self._fire(e)

    def _fire(self, *args, **kwargs):
        # copy, so a handler may unregister itself while being notified
        for handler in tuple(self._handlers):
            handler(*args, **kwargs)


class QueuedEventSource(EventSource):
    """
    Events posted from any thread are queued, and fired to the handlers
    when the owning thread calls publish().
    """
    def __init__(self):
        super().__init__()
        self.event_queue = Queue()

    def post(self, event):
        """ queues an event. Safe to call from any thread. """
        self.event_queue.put(event)

    def drain(self):
        """ removes and returns all queued events. """
        queue = self.event_queue
        events = []
        while not queue.empty():
            events.append(queue.get())
        return events

    def publish(self):
        """ publishes any queued events on the calling thread. """
        events = self.drain()
        if events:
            self._fire_all(events)
