"""Logfire tracing for Parley.

Only active when ``logfire.enabled`` is set in ``app.yaml`` and the logfire
package imports. Otherwise every helper here does nothing, so the gateway can
wrap its operations in :func:`span` unconditionally.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from parley.config import Settings

# The configured logfire module, or None while tracing is off
_logfire = None


def is_available() -> bool:
    return _logfire is not None


def configure(settings: Settings) -> bool:
    """Set up logfire from ``settings.logfire``. Returns whether tracing is on."""
    global _logfire

    options = settings.logfire
    if not options.enabled:
        return False

    try:
        import logfire
    except ImportError:
        return False

    logfire.configure(
        service_name=options.service_name,
        send_to_logfire="if-token-present",
        environment=options.environment,
        console=logfire.ConsoleOptions() if options.console else False,
    )
    _logfire = logfire
    return True


def instrument_app(app):
    """Wrap the ASGI app so each request becomes a trace."""
    return _logfire.instrument_asgi(app) if is_available() else app


def instrument_sqlalchemy(engine) -> None:
    if is_available():
        _logfire.instrument_sqlalchemy(engine=engine)


@contextmanager
def span(name: str, **attrs: Any):
    """Trace the enclosed block as ``name``. Yields None while tracing is off."""
    if not is_available():
        yield None
        return
    with _logfire.span(name, **attrs) as current:
        yield current


def exception(msg: str, **kwargs: Any) -> bool:
    """Report the active exception to logfire. False means nothing was sent."""
    if not is_available():
        return False
    _logfire.exception(msg, **kwargs)
    return True
