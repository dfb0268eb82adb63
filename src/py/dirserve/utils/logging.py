import sys
import time
from enum import Enum
from typing import NamedTuple, Any, TextIO, TypeAlias
from contextvars import ContextVar
from .term import palette

LogOrigin: ContextVar[str] = ContextVar("LogOrigin", default="dirserve")

TPrimitive: TypeAlias = (
	bool | int | float | str | bytes | list[Any] | tuple[Any, ...] | dict[str, Any]
)


class LogType(Enum):
	Message = 0  # A general information message
	Event = 20  # An event


class LogLevel(Enum):
	Info = 10
	Warning = 30  # A Warning
	Error = 40  # A managed error
	Exception = 50  # An un-managed error


LOG_LEVEL_COLOR = {
	LogLevel.Info: 75,
	LogLevel.Warning: 202,
	LogLevel.Error: 160,
	LogLevel.Exception: 124,
}


class LogEntry(NamedTuple):
	origin: str
	time: float
	type: LogType = LogType.Message
	level: LogLevel = LogLevel.Info
	message: str | None = None
	name: str | None = None
	value: TPrimitive | None = None
	context: dict[str, TPrimitive | None] | None = None
	icon: str | None = None


def sink(output: TextIO | None = None) -> TextIO:
	"""Returns the stream log entries are written to."""
	return output or sys.stderr


def formatData(value: Any, bold: str = "", normal: str = "") -> str:
	if value is None or value == () or value == [] or value == {}:
		return "◌"
	elif isinstance(value, dict):
		return " ".join(
			f"{bold}{k}{normal}={formatData(v, bold, normal)}" for k, v in value.items()
		)
	elif isinstance(value, list) or isinstance(value, tuple):
		return ",".join(formatData(v, bold, normal) for v in value)
	elif isinstance(value, str):
		return repr(value) if " " in value else value
	elif isinstance(value, bool):
		return "✓" if value else "✗"
	elif isinstance(value, float):
		return f"{value:0.2f}"
	else:
		return str(value)


def send(entry: LogEntry, output: TextIO | None = None) -> LogEntry:
	stream = sink(output)
	t = palette(stream)
	icon: str = f" {entry.icon}" if entry.icon else ""
	clr: str = t.Color(LOG_LEVEL_COLOR[entry.level])
	context: str = formatData(entry.context, t.BOLD, t.NORMAL)
	if entry.type == LogType.Event:
		stream.write(
			f"{clr}{t.BOLD}[{entry.origin}] {entry.name}{t.RESET} {formatData(entry.value, t.BOLD, t.NORMAL)} {context}{t.RESET}\n"
		)
	else:
		stream.write(
			f"{clr}{t.BOLD}[{entry.origin}]{t.RESET}{icon} {entry.message} {context}{t.RESET}\n"
		)
	stream.flush()
	return entry


def entry(
	*,
	origin: str | None = None,
	at: float | None = None,
	type: LogType = LogType.Message,
	level: LogLevel = LogLevel.Info,
	message: str | None = None,
	name: str | None = None,
	value: TPrimitive | None = None,
	context: dict[str, TPrimitive | None],
	icon: str | None = None,
) -> LogEntry:
	return LogEntry(
		origin=origin or LogOrigin.get(),
		time=time.time() if at is None else at,
		type=type,
		level=level,
		message=message,
		name=name,
		value=value,
		context=context,
		icon=icon,
	)


def info(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	output: TextIO | None = None,
	**context: TPrimitive | None,
) -> LogEntry:
	return send(
		entry(message=message, origin=origin, context=context, icon=icon), output
	)


def warning(
	message: str,
	*,
	origin: str | None = None,
	icon: str | None = None,
	output: TextIO | None = None,
	**context: TPrimitive | None,
) -> LogEntry:
	return send(
		entry(
			message=message,
			level=LogLevel.Warning,
			origin=origin,
			context=context,
			icon=icon,
		),
		output,
	)


def error(
	message: str,
	code: int | str | None,
	*,
	origin: str | None = None,
	icon: str | None = None,
	output: TextIO | None = None,
	**context: TPrimitive | None,
) -> LogEntry:
	return send(
		entry(
			message=message,
			value=code,
			level=LogLevel.Error,
			origin=origin,
			context=context,
			icon=icon,
		),
		output,
	)


def event(
	event: str,
	value: Any = None,
	*,
	origin: str | None = None,
	output: TextIO | None = None,
	**context: TPrimitive | None,
) -> LogEntry:
	return send(
		entry(
			name=event,
			value=value,
			type=LogType.Event,
			origin=origin,
			context=context,
		),
		output,
	)


def exception(
	exception: Exception,
	message: str | None = None,
	*,
	output: TextIO | None = None,
) -> Exception:
	try:
		stream = sink(output)
		stream.write(
			f"!!! EXCP {f'{message}: [{exception.__class__.__name__}] {exception}' if message else f'[{exception.__class__.__name__}] {exception}'}\n"
		)
		tb = exception.__traceback__
		while tb:
			code = tb.tb_frame.f_code
			stream.write(
				f"... in {code.co_name:15s} at {tb.tb_lineno:4d} in {code.co_filename}\n",
			)
			tb = tb.tb_next
		stream.flush()
	except Exception:  # nosec: B110
		# Swallow all exceptions so that this function can be called from an exception
		# handler safely, such as in the implementation of logging/logging sinks.
		pass

	# Return the exception so that this function can be called like:
	#   raise exception(e)
	return exception


# EOF
