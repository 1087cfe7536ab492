from contextlib import contextmanager
import sys
import traceback
import services.logger as log

l = log.get_logger()


class TransportError(Exception):
    """The metadata service could not be reached or answered with a non-2xx status.

    Callers treat this like a service outage: it is eligible for the local
    decoding fallback.
    """

    def __init__(self, message: str, status: int | None = None):
        super().__init__(message)
        self.status = status


def _format_exc(exc: BaseException) -> str:
    return ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))


def _handle_uncaught_exceptions(exc_type, exc_value, exc_traceback):
    """Last-resort hook for exceptions escaping the main thread."""
    if issubclass(exc_type, KeyboardInterrupt):
        sys.__excepthook__(exc_type, exc_value, exc_traceback)
        return
    l.critical(
        "Unhandled exception caught:\n"
        + ''.join(traceback.format_exception(exc_type, exc_value, exc_traceback))
    )


sys.excepthook = _handle_uncaught_exceptions


def handle_loop_exception(loop, context: dict):
    """asyncio counterpart of the excepthook, for exceptions nobody awaited."""
    exc = context.get("exception")
    message = context.get("message", "unhandled exception in event loop")
    if exc is None:
        l.error(f"Event loop error: {message}")
        return
    l.critical(f"Event loop error: {message}\n{_format_exc(exc)}")


def raise_and_log(message: str, exception_type: type = Exception):
    """
    Log an error and then raise the specified exception.

    :param message: Error message to log and include in the exception.
    :param exception_type: Type of exception to raise (default: Exception).
    """
    l.error(f"Raising exception: {message}")
    raise exception_type(message)


@contextmanager
def catch_and_log(context_info: str = "", expected: tuple[type[BaseException], ...] = ()):
    """
    Log any exception raised inside the block, then re-raise it.

    Exceptions listed in *expected* are routine failures: they get a one-line
    warning.  Anything else is logged as an error with its traceback.

    :param context_info: Context included in the log line.
    :param expected: Exception types the caller already knows how to handle.
    """
    try:
        yield
    except expected as e:
        l.warning(f"{context_info}: {e}")
        raise
    except Exception as e:
        l.error(f"Exception caught in context '{context_info}': {e}\n{_format_exc(e)}")
        raise
