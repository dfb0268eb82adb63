from typing import ClassVar, TextIO
import os

# SEE: https://no-color.org/
NO_COLOR: bool = "NO_COLOR" in os.environ
FORCE_COLOR: bool = "FORCE_COLOR" in os.environ


def colored(stream: TextIO) -> bool:
	"""Tells if escape sequences should be written to the given stream. Sinks
	that are not terminals (files, buffers) get plain text."""
	if NO_COLOR:
		return False
	elif FORCE_COLOR:
		return True
	else:
		isatty = getattr(stream, "isatty", None)
		return bool(isatty and isatty())


class Term:
	BOLD: ClassVar[str] = "\033[1m"
	NORMAL: ClassVar[str] = "\033[0m"
	RESET: ClassVar[str] = "\033[0m"

	@staticmethod
	def Color(color: int, bold: bool = False) -> str:
		return f"\033[{'1' if bold else '0'};38;5;{color}m"


class Plain:
	BOLD: ClassVar[str] = ""
	NORMAL: ClassVar[str] = ""
	RESET: ClassVar[str] = ""

	@staticmethod
	def Color(color: int, bold: bool = False) -> str:
		return ""


def palette(stream: TextIO) -> type[Term] | type[Plain]:
	return Term if colored(stream) else Plain


# EOF
