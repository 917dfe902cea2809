from typing import Optional


class SimulationError(Exception):
    """
    Base class for errors signalling a broken simulation invariant.

    These errors are never expected in a correct run and are not recovered.

    Attributes
    ----------
    message : str
    """
    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class EmptyEventQueueError(SimulationError):
    """
    An error is thrown when the next event is requested from an empty queue.
    """
    def __init__(self, message: str = "event queue is empty"):
        super().__init__(message)


class ScheduleError(SimulationError):
    """
    An error indicating that an event was scheduled in the past.

    Attributes
    ----------
    time : float
        requested event time
    now : float
        time of the event being processed when scheduling happened
    """
    def __init__(self, time: float, now: float):
        self.time = time
        self.now = now
        super().__init__(
            f"can not schedule event at {time}, current time is {now}")


class CancelError(SimulationError):
    """
    An error indicating that a fired or cancelled event was cancelled again.
    """
    pass


class RoundError(SimulationError):
    """
    An error in round (batch) bookkeeping.

    Attributes
    ----------
    index : int, optional
        index of the round, zero for the transient round
    """
    def __init__(self, message: str, index: Optional[int] = None):
        self.index = index
        prefix = f"round {index}: " if index is not None else ""
        super().__init__(f"{prefix}{message}")
