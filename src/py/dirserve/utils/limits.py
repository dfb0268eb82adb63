import resource
from enum import Enum
from typing import NamedTuple


class LimitType(Enum):
	Files = resource.RLIMIT_NOFILE


# Each connection holds a socket and, while a file is sent, its handle.
REASONABLE_LIMITS: dict[LimitType, int] = {
	LimitType.Files: 10 * 10240,
}


class Limit(NamedTuple):
	type: LimitType
	soft: int
	hard: int


def limit(scope: LimitType) -> Limit:
	return Limit(scope, *resource.getrlimit(scope.value))


def unlimit(
	scope: LimitType, ratio: float = 1.0, *, maximum: int | None = 0
) -> int | bool:
	"""Raises the soft limit towards the hard one, capped to a reasonable
	maximum. Returns the new limit, or `False` when it can't be changed."""
	lm = limit(scope)
	try:
		target = int(lm.soft + ratio * (lm.hard - lm.soft))
		# Darwin reports really high hard limits that lead to OverflowErrors.
		maximum = REASONABLE_LIMITS.get(scope) if maximum == 0 else maximum
		if maximum:
			target = min(maximum, target)
		resource.setrlimit(scope.value, (target, lm.hard))
		return target
	except ValueError:
		return False
	except OSError:
		return False


# EOF
