"""Logging for archline.

Everything is sent through logfire. Console output is logfire's own;
the optional log file is fed by an OpenTelemetry span processor that
drops spans below the file's level and renders the rest as JSON or
through a str.format template.
"""

from __future__ import annotations

import contextlib
import os
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from opentelemetry.proto.logs.v1 import logs_pb2
from opentelemetry.sdk.trace import ReadableSpan
from opentelemetry.sdk.trace.export import SpanExporter, SpanExportResult
from pydantic import Field, PrivateAttr, model_validator

from archline.core.base import BaseConfig

# OpenTelemetry severity numbers, most verbose first. logfire uses the
# same numbering, so these can be passed straight to logfire.log().
SEVERITY = {
    'spew': logs_pb2.SEVERITY_NUMBER_TRACE,
    'trace': logs_pb2.SEVERITY_NUMBER_TRACE3,
    'debug': logs_pb2.SEVERITY_NUMBER_DEBUG,
    'info': logs_pb2.SEVERITY_NUMBER_INFO,
    'warn': logs_pb2.SEVERITY_NUMBER_WARN,
    'error': logs_pb2.SEVERITY_NUMBER_ERROR,
    'fatal': logs_pb2.SEVERITY_NUMBER_FATAL,
}

# Attributes added by instrumentation rather than by our log calls
_INTERNAL_PREFIXES = (
    'logfire.', 'code.', 'otel.', 'telemetry.', 'service.', 'process.',
)

_ESCAPES = str.maketrans({'\\': '\\\\', '\n': '\\n', '\r': '\\r', '\t': '\\t'})

_active: Logger | None = None


def _literal(msg: str) -> str:
    """Escape braces so logfire does not treat msg as a template."""
    return msg.replace("{", "{{").replace("}", "}}")


def _discard(*args, **kwargs):  # noqa: ARG001
    return contextlib.nullcontext()


class _ActiveLogger:
    """Stands in for whichever Logger setup_logger() installed last.

    Calls made before any setup are dropped, so modules can log from
    unit tests without configuration.
    """

    def __getattr__(self, name):
        if _active is None:
            return _discard
        return getattr(_active, name)

    def __enter__(self):
        return self if _active is None else _active.__enter__()

    def __exit__(self, *exc):
        return False if _active is None else _active.__exit__(*exc)


# What every other module imports
logger = _ActiveLogger()


def severity_of(span: ReadableSpan) -> int:
    return (span.attributes or {}).get('logfire.level_num', SEVERITY['info'])


def level_name(severity: int) -> str:
    """Name of the most severe level at or below severity."""
    name = 'spew'
    for candidate, number in SEVERITY.items():
        if severity >= number:
            name = candidate
    return name


def render_span(
    span: ReadableSpan, template: str | None, escape: bool = False
) -> str:
    """Render one span as a log line.

    Without a template the span is dumped as JSON. Template fields:
    timestamp, level, message, filepath, lineno, location, function.
    Attributes passed to the log call are appended as key=value pairs.
    """
    if not template:
        return span.to_json() + os.linesep

    attrs = span.attributes or {}
    message = attrs.get('logfire.msg', span.name)
    if escape:
        message = message.translate(_ESCAPES)
    filepath = attrs.get('code.filepath', '')
    lineno = attrs.get('code.lineno', '')

    try:
        line = template.format(
            timestamp=datetime.fromtimestamp(span.start_time / 1e9, tz=UTC),
            level=level_name(severity_of(span)),
            message=message,
            filepath=filepath,
            lineno=lineno,
            location=f"{filepath}:{lineno}" if filepath else '',
            function=attrs.get('code.function', ''),
        )
    except KeyError as e:
        return f"ERROR: Invalid template field {e}\n"

    extra = sorted(
        (key, value) for key, value in attrs.items()
        if not key.startswith(_INTERNAL_PREFIXES)
    )
    if extra:
        line += ' │ ' + ' '.join(f"{key}={value!r}" for key, value in extra)
    return line + '\n'


class SeverityFilter(SpanExporter):
    """Forwards spans at or above a minimum level to another exporter."""

    def __init__(self, exporter: SpanExporter, level: str):
        self.exporter = exporter
        self.minimum = SEVERITY.get(level.lower(), SEVERITY['info'])

    def export(self, spans: list[ReadableSpan]) -> SpanExportResult:
        keep = [span for span in spans if severity_of(span) >= self.minimum]
        if not keep:
            return SpanExportResult.SUCCESS
        return self.exporter.export(keep)

    def shutdown(self) -> None:
        self.exporter.shutdown()

    def force_flush(self, timeout_millis: int = 30000) -> bool:
        return self.exporter.force_flush(timeout_millis)


class Sink(BaseConfig):
    """One log destination, closed through the BaseCloseable cascade."""

    enabled: bool = Field(default=True, description="Enable this sink")
    level: str | None = Field(
        default=None,
        description=(
            "Minimum level for this sink; inherits Logger.level when "
            "unset. One of spew, trace, debug, info, warn, error, fatal"
        )
    )

    _processor: Any = PrivateAttr(default=None)

    def open(self, log_root: Path, run_name: str):
        """Span processor feeding this sink, or None if logfire
        handles it."""
        return None

    def close(self):
        if self._processor is not None:
            with contextlib.suppress(Exception):
                self._processor.shutdown()
            self._processor = None


class ConsoleSink(Sink):
    """Colored console output rendered by logfire."""

    verbose: bool = Field(default=False, description="Show span details")
    colors: str = Field(
        default="auto",
        description="Color mode: auto, always, never"
    )


class FileSink(Sink):
    """Log file written through an OpenTelemetry span processor."""

    enabled: bool = Field(default=False, description="Enable file logging")
    path: str = Field(
        default="{log_root}/{run_name}/archline.log",
        description="Log file path; {log_root} and {run_name} are filled in"
    )
    format_template: str | None = Field(
        default=None,
        description="str.format template per line; JSON spans when unset"
    )
    escape_special_characters: bool = Field(
        default=False,
        description="Escape newlines and tabs inside messages"
    )

    _file: Any = PrivateAttr(default=None)

    def render(self, span: ReadableSpan) -> str:
        return render_span(
            span, self.format_template, self.escape_special_characters
        )

    def open(self, log_root: Path, run_name: str):
        from opentelemetry.sdk.trace.export import (
            BatchSpanProcessor,
            ConsoleSpanExporter,
        )

        path = Path(self.path.format(log_root=log_root, run_name=run_name))
        path.parent.mkdir(parents=True, exist_ok=True)
        # Line buffered; stays open until close()
        self._file = path.open("a", buffering=1, encoding="utf-8")

        exporter = ConsoleSpanExporter(out=self._file, formatter=self.render)
        return BatchSpanProcessor(SeverityFilter(exporter, self.level or "info"))

    def close(self):
        """Flush pending spans, then close the file."""
        super().close()
        if self._file is not None and not self._file.closed:
            with contextlib.suppress(OSError):
                self._file.close()


class LogfireSink(Sink):
    """Telemetry sent to the logfire.dev service."""

    enabled: bool = Field(default=False, description="Send to logfire.dev")
    token: str | None = Field(
        default=None,
        description="Write token (or LOGFIRE_TOKEN)"
    )


class Logger(BaseConfig):
    """Logging configuration and the methods used to log.

    Closing the logger closes every sink, so `with logger:` releases
    the log file.
    """

    level: str = Field(
        default="info",
        description="Level for sinks that do not set their own"
    )
    console: ConsoleSink = Field(default_factory=ConsoleSink)
    file: FileSink = Field(default_factory=FileSink)
    logfire: LogfireSink = Field(default_factory=LogfireSink)

    @model_validator(mode='after')
    def _inherit_level(self) -> 'Logger':
        for sink in (self.console, self.file):
            sink.level = sink.level or self.level
        return self

    def setup(self, log_root: Path, run_name: str):
        """Open the sinks and configure logfire for this run.

        Args:
            log_root: Directory for log files
            run_name: Name of the run, used in paths and service name
        """
        import logfire

        processors = []
        if self.file.enabled:
            self.file._processor = self.file.open(log_root, run_name)
            processors.append(self.file._processor)

        console = False
        if self.console.enabled:
            # logfire has no level below trace
            min_level = self.console.level
            console = logfire.ConsoleOptions(
                min_log_level="trace" if min_level == "spew" else min_level,
                verbose=self.console.verbose,
                colors=self.console.colors,
                include_timestamps=True,
            )

        logfire.configure(
            service_name=f"archline-{run_name}",
            send_to_logfire=self.logfire.enabled,
            token=self.logfire.token if self.logfire.enabled else None,
            console=console,
            additional_span_processors=processors or None,
        )
        logfire.instrument_pydantic_ai()

    def log(self, level: str, msg: str, **attributes):
        """Log msg at a named level."""
        import logfire
        logfire.log(
            SEVERITY[level], _literal(msg), attributes=attributes or None
        )

    def spew(self, msg: str, **attributes):
        """Below trace, for raw command output."""
        self.log('spew', msg, **attributes)

    def trace(self, msg: str, **attributes):
        self.log('trace', msg, **attributes)

    def debug(self, msg: str, **attributes):
        self.log('debug', msg, **attributes)

    def info(self, msg: str, **attributes):
        self.log('info', msg, **attributes)

    def warn(self, msg: str, **attributes):
        self.log('warn', msg, **attributes)

    warning = warn

    def error(self, msg: str, **attributes):
        self.log('error', msg, **attributes)

    def fatal(self, msg: str, **attributes):
        self.log('fatal', msg, **attributes)

    def span(self, msg: str, **attributes):
        """Context manager grouping the logs of one operation."""
        import logfire
        return logfire.span(_literal(msg), **attributes)


def setup_logger(
    log_root: Path,
    run_name: str,
    level: str = "info",
    console: ConsoleSink | None = None,
    file: FileSink | None = None,
    logfire: LogfireSink | None = None,
) -> Logger:
    """Install a new global logger.

    Config calls this once configuration is loaded; tests call it
    directly for console-only output.

    Returns:
        The Logger now behind the module-level `logger`
    """
    global _active

    _active = Logger(
        level=level,
        console=console or ConsoleSink(),
        file=file or FileSink(),
        logfire=logfire or LogfireSink(),
    )
    _active.setup(log_root, run_name)
    return _active
