"""
Shared helper methods and base classes.
"""

from enum import Enum
from functools import wraps
import inspect
import logging
import sched
import time
from typing import (Any, Callable, Dict, Generator, Generic, Iterable, List, NamedTuple, Optional,
                    TypeVar, Union)

from ..errors import MobileError


LOG = logging.getLogger(__name__)

T = TypeVar("T")

Callback = Callable[[Optional[MobileError], Any], None]
"""
Completion callback of an asynchronous call, receiving either an error or a result value.
"""

Work = Callable[[Callback], None]
"""
Unit of asynchronous work: a callable that starts an operation when passed a `callback` keyword
argument, and later fires that callback.  Plumbing functions and `Result.collect` tasks with all
other arguments bound (e.g. with `functools.partial`) qualify.
"""

Collect = Generator[Work, Any, T]
"""
Generic type for the return value of functions using `Result.collect`.
"""


class Unset:
    """
    Constructor of generic default values for optional but nullable parameters.
    """

    def __repr__(self):
        return "UNSET"


UNSET = Unset()
"""
Global generic default value.
"""


class State(Enum):
    """
    Enumeration used by `Result` to declare whether the action happened.
    """

    unchanged = 0
    """
    No action required, the request and current state are consistent.
    """
    success = 1
    """
    The action was completed without issues.
    """
    created = 2
    """
    The action resulted in the creation of a new resource.
    """

    def __bool__(self):
        return bool(self.value)


class Result(Generic[T]):
    """
    State and optional accompanying value from a unit of work.

    For a simple plumbing action, pass a new result directly to the callback with the resulting
    `State` and a value if relevant:

        def unit(ctx, callback):
            # Issue a request, and once it completes:
            callback(None, Result(State.success, True))

    For a task that chains multiple asynchronous calls, see `Result.collect`.  The state of such a
    result is based on all of its parts -- if any changes were made, the outer result also reports
    a change.

    A result can be checked for truthiness, which is `False` if no changes were made.

    A result can also be converted to a string, which produces a tree-like summary of changes:

        module:task success True
            module:unit1 unchanged
            module:unit2 success
    """

    @classmethod
    def collect(cls, fn: Callable[..., Collect[T]]) -> Callable[..., None]:
        """
        Decorator: build a `Result` from a chain of asynchronous sub-tasks:

            @Result.collect
            def task(ctx) -> Collect[str]:
                service = yield partial(get_service, ctx, "name")
                if service["state"] != "Ready":
                    yield partial(restart_service, ctx, "name")
                return service["name"]

            task(ctx, callback=done)

        The inner function should be a generator yielding units of work (see `Work`).  Each unit is
        started once the previous one completed; its value is sent back into the generator, and its
        error is raised at the `yield` expression, where it may be caught.

        The wrapper takes the same arguments plus a keyword-only `callback`.  Once the generator
        returns, the callback receives a new `Result` object, whose `parts` will be any `Result`
        values produced by sub-tasks, and whose `value` is the generator's return value.  An
        uncaught `MobileError` is passed to the callback instead.
        """
        @wraps(fn)
        def inner(*args: Any, callback: Callback, **kwargs: Any) -> None:
            parts: List[Result[Any]] = []
            gen = fn(*args, **kwargs)

            def advance(error: Optional[MobileError] = None, value: Any = None) -> None:
                try:
                    if error is not None:
                        work = gen.throw(error)
                    else:
                        work = gen.send(value)
                except StopIteration as ex:
                    callback(None, cls(None, ex.value, parts, fn))
                    return
                except MobileError as ex:
                    callback(ex, None)
                    return

                fired = False

                def resume(error: Optional[MobileError], value: Any = None) -> None:
                    nonlocal fired
                    if fired:
                        LOG.warning("Ignoring repeated completion of work in %s", fn.__qualname__)
                        return
                    fired = True
                    if error is None and isinstance(value, Result):
                        parts.append(value)
                    advance(error, value)

                work(callback=resume)

            advance()
        return inner

    def __init__(self, state: Optional[State] = None, value: Union[T, Unset] = UNSET,
                 parts: Iterable["Result[Any]"] = (), caller: Optional[Callable[..., Any]] = None):
        self._state = state
        self._value = value
        self.parts = tuple(parts)
        self.caller = "<unknown>"
        # Inspection magic to log the calling method, e.g. `module.sub:Class.method`.
        name = None
        if not caller:
            frame = inspect.currentframe()
            try:
                name = frame.f_back.f_code.co_name
                caller = frame.f_back.f_globals[name]
            except (AttributeError, KeyError):
                pass
        if caller:
            self.caller = "{}:{}".format(caller.__module__, caller.__qualname__)
        elif name:
            self.caller = name

    @property
    def state(self) -> State:
        """
        Modification state of the unit of work.

        This may be set directly, computed from `parts`, or defaulted to `State.unchanged`.
        """
        if self._state:
            return self._state
        elif any(self.parts):
            if State.created in (part.state for part in self.parts):
                return State.created
            else:
                return State.success
        else:
            return State.unchanged

    @state.setter
    def state(self, state: State) -> None:
        self._state = state

    @property
    def value(self) -> T:
        """
        Return value produced by the unit of work.

        Accessing this attribute will raise `ValueError` if no value has been set.
        """
        if isinstance(self._value, Unset):
            raise ValueError("No value set")
        return self._value

    @value.setter
    def value(self, value: T) -> None:
        self._value = value

    def __bool__(self) -> bool:
        return bool(self.state)

    def __repr__(self) -> str:
        params = [str(self.state)]
        if not isinstance(self._value, Unset):
            params.append(repr(self._value))
        if self.parts:
            params.append("<{} parts>".format(len(self.parts)))
        return "{}({})".format(self.__class__.__name__, ", ".join(params))

    def __str__(self) -> str:
        tree = "{}: {}".format(self.caller, self.state.name)
        if not isinstance(self._value, Unset):
            tree = "{} {!r}".format(tree, self._value)
        if self.parts:
            for result in self.parts:
                tree += "\n    {}".format(str(result).replace("\n", "\n    "))
        return tree


class Password:
    """
    Container of secrets passed to provisioning requests.  Use `str(passwd)` to get the actual value.
    """

    def __init__(self, value: str):
        self._value = value

    def __str__(self):
        return self._value

    def __repr__(self):
        return "<{}: '***'>".format(self.__class__.__name__)

    def __len__(self):
        return len(self._value)

    def __contains__(self, text: str):
        return text in self._value


class Timer:
    """
    Handle to a continuation scheduled on a `Reactor`, which may be cancelled until it runs.
    """

    def __init__(self, scheduler: sched.scheduler, event: sched.Event):
        self._scheduler = scheduler
        self._event = event

    @property
    def pending(self) -> bool:
        return any(event is self._event for event in self._scheduler.queue)

    def cancel(self) -> None:
        if self.pending:
            self._scheduler.cancel(self._event)


class Reactor:
    """
    Single-threaded run loop for callback continuations.

    Nothing executes until `run` is called, which processes scheduled calls in time order and returns
    once none remain.  Delays are honoured by the underlying `sched.scheduler`, so a continuation
    waiting on a timer leaves the loop free to run anything due sooner.
    """

    def __init__(self, timefunc: Callable[[], float] = time.monotonic,
                 delayfunc: Callable[[float], Any] = time.sleep):
        self._scheduler = sched.scheduler(timefunc, delayfunc)

    def call_soon(self, fn: Callable[..., Any], *args: Any) -> Timer:
        return self.call_later(0, fn, *args)

    def call_later(self, delay: float, fn: Callable[..., Any], *args: Any) -> Timer:
        LOG.debug("Scheduling %r in %ss", fn, delay)
        return Timer(self._scheduler, self._scheduler.enter(delay, 0, fn, args))

    @property
    def idle(self) -> bool:
        return self._scheduler.empty()

    def run(self) -> None:
        self._scheduler.run()


class Gathered(NamedTuple):
    """
    Outcome of a `Join`: values and errors of each named slot.
    """

    results: Dict[str, Any]
    errors: Dict[str, MobileError]


class Join:
    """
    Barrier for independent calls issued together, completing once all of them have called back:

        join = Join(done)
        get_service(ctx, name, join.slot("service"))
        get_application(ctx, name, join.slot("application"))
        join.close()

    Slots may complete in any order, and more slots may be added until the join is closed (e.g.
    from within another slot's callback).  The final callback fires exactly once, with a `Gathered`
    value; individual errors are collected rather than reported as a failure of the whole join.
    """

    def __init__(self, callback: Callback):
        self._callback = callback
        self._pending = 0
        self._closed = False
        self._done = False
        self._gathered = Gathered({}, {})

    def slot(self, name: str) -> Callback:
        """
        Register another expected call, returning the callback to pass to it.
        """
        if self._done:
            raise RuntimeError("Join has already completed")
        self._pending += 1
        fired = False

        def inner(error: Optional[MobileError], value: Any = None) -> None:
            nonlocal fired
            if fired:
                raise RuntimeError("Slot {!r} called back twice".format(name))
            fired = True
            if error is None:
                self._gathered.results[name] = value
            else:
                LOG.debug("Join slot %r failed: %r", name, error)
                self._gathered.errors[name] = error
            self._pending -= 1
            self._check()

        return inner

    def close(self) -> None:
        """
        Declare that all initial slots have been registered.
        """
        self._closed = True
        self._check()

    def _check(self) -> None:
        if self._closed and not self._pending and not self._done:
            self._done = True
            self._callback(None, self._gathered)
