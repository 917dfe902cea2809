import heapq
from collections import deque
from typing import Any, Deque, Generic, Iterator, List, Optional, Tuple, \
    TypeVar

from prioq.errors import CancelError, EmptyEventQueueError, ScheduleError


T = TypeVar('T')


class Event:
    """
    A scheduled action: fire time, kind and the customer it concerns.

    Events are created by `EventQueue.schedule()` only. Sequence number
    is assigned by the queue and breaks ties between equal fire times.
    """
    __slots__ = ('time', 'kind', 'customer', 'seq', 'pending')

    def __init__(self, time: float, kind: Any, customer: Any, seq: int):
        self.time = time
        self.kind = kind
        self.customer = customer
        self.seq = seq
        self.pending = True

    def __repr__(self):
        return f"(Event: t={self.time:g}, kind={self.kind}, seq={self.seq})"


class EventQueue:
    """
    Priority queue of pending events.

    Events are extracted in ascending order of their times. Events with
    equal times are extracted in the order they were scheduled. The queue
    also tracks current model time, that is the time of the last extracted
    event, and refuses to schedule anything before it.

    Cancelled events are marked and left in the heap, they are skipped
    when reaching the top.
    """
    def __init__(self):
        self._heap: List[Tuple[float, int, Event]] = []
        self._next_seq = 0
        self._size = 0
        self._time = 0.0

    @property
    def time(self) -> float:
        """
        Get time of the event being processed (zero before the first one).
        """
        return self._time

    @property
    def size(self) -> int:
        """
        Get the number of pending (not fired and not cancelled) events.
        """
        return self._size

    @property
    def empty(self) -> bool:
        return self._size == 0

    def __len__(self):
        return self._size

    def schedule(self, time: float, kind: Any, customer: Any = None) -> Event:
        """
        Schedule a new event.

        Parameters
        ----------
        time : float
            absolute fire time, not less than current time
        kind : Any
            event kind, typically an enumeration value
        customer : Any, optional
            the customer the event concerns

        Returns
        -------
        event : Event
            handle, that can be passed to `cancel()`
        """
        if time < self._time:
            raise ScheduleError(time, self._time)
        event = Event(time, kind, customer, self._next_seq)
        self._next_seq += 1
        heapq.heappush(self._heap, (time, event.seq, event))
        self._size += 1
        return event

    def next(self) -> Event:
        """
        Extract the earliest pending event and move time to its fire time.

        Raises
        ------
        EmptyEventQueueError
            if there are no pending events
        """
        while self._heap:
            _, _, event = heapq.heappop(self._heap)
            if event.pending:
                event.pending = False
                self._size -= 1
                self._time = event.time
                return event
        raise EmptyEventQueueError()

    def cancel(self, event: Event) -> None:
        """
        Cancel a pending event. Order of the remaining events is not changed.

        Raises
        ------
        CancelError
            if the event already fired or was cancelled before
        """
        if not event.pending:
            raise CancelError(f"event {event} is not pending")
        event.pending = False
        self._size -= 1

    def __iter__(self) -> Iterator[Event]:
        """
        Iterate over pending events in extraction order.
        """
        return iter([item[2] for item in sorted(self._heap) if item[2].pending])

    def __repr__(self):
        events = ', '.join(str(event) for event in self)
        return f"(EventQueue: t={self._time:g}, events=[{events}])"


class FifoQueue(Generic[T]):
    """
    Infinite queue with FIFO order.

    Unlike usual queues in service systems, the customer being served
    stays in the queue: head of the queue is in service (or is going to be
    served as soon as the server becomes available).
    """
    def __init__(self):
        self.__items: Deque[T] = deque()

    @property
    def size(self) -> int:
        return len(self.__items)

    @property
    def empty(self) -> bool:
        return len(self.__items) == 0

    @property
    def head(self) -> Optional[T]:
        """
        Get the first item without removing it, or None if queue is empty.
        """
        return self.__items[0] if self.__items else None

    def push(self, item: T) -> None:
        self.__items.append(item)

    def pop(self) -> Optional[T]:
        if self.__items:
            return self.__items.popleft()
        return None

    def __len__(self):
        return len(self.__items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.__items)

    def __repr__(self):
        items = ', '.join([str(item) for item in self.__items])
        return f"(FifoQueue: q=[{items}], size={self.size})"


class TimeIntegral:
    """
    Running integral of a piecewise-constant value over time.

    When calling `update(ti, vi)`, we state that the value `vi` was kept
    since the previous update till `ti`. Thus, `vi * (ti - t{i-1})` is
    added to the integral, and `ti` becomes the previous update time.

    Dividing the integral by the observation interval gives time average.
    """
    def __init__(self, init_time: float = 0.0):
        self._value: float = 0.0
        self._updated_at: float = init_time

    @property
    def value(self) -> float:
        return self._value

    @property
    def updated_at(self) -> float:
        return self._updated_at

    def update(self, time: float, value: float) -> None:
        """
        Record that `value` was kept since the previous update till `time`.

        Parameters
        ----------
        time : float
        value : float
        """
        if time < self._updated_at:
            raise ValueError(f"can not update integral at {time}, "
                             f"already updated at {self._updated_at}")
        self._value += value * (time - self._updated_at)
        self._updated_at = time

    def __repr__(self):
        return f"(TimeIntegral: value={self._value:g}, " \
               f"updated_at={self._updated_at:g})"
