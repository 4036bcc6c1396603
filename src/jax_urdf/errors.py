"""Error taxonomy and warning accumulation for URDF import/export.

Fatal problems are raised as subclasses of ``UrdfError``. Recoverable numeric
problems (a near-zero joint axis, an inertia below the floor, ...) never raise:
they are recorded as ``NumericWarning`` values in a ``WarningSink`` that is
threaded through every stage and handed back to the caller.
"""

import enum
import logging
from dataclasses import dataclass
from typing import Iterator, List, Optional, Tuple

console_logger = logging.getLogger(__name__)


class UrdfError(Exception):
    """Base class for every fatal URDF import/export error."""


class ParseError(UrdfError, ValueError):
    """The document is malformed or misses a required attribute/element.

    Attributes:
        element: Tag of the offending XML element, if known.
        attribute: Name of the offending attribute, if any.
        subject: Name of the enclosing link or joint, if any.
    """

    def __init__(
        self,
        message: str,
        element: Optional[str] = None,
        attribute: Optional[str] = None,
        subject: Optional[str] = None,
    ):
        self.element = element
        self.attribute = attribute
        self.subject = subject
        self.reason = message

        context = []
        if subject is not None:
            context.append(f"in '{subject}'")
        if element is not None:
            context.append(f"<{element}>")
        if attribute is not None:
            context.append(f"attribute '{attribute}'")
        if context:
            message = f"{message} ({' '.join(context)})"
        super().__init__(message)


class InvalidNameError(ParseError):
    """Two links share the same name."""


class StructuralError(UrdfError, ValueError):
    """The link/joint graph is not a single rooted tree."""


class OptimizationError(UrdfError):
    """Fixed-joint optimization cannot merge two bodies consistently."""


class ExportError(UrdfError):
    """The in-memory model cannot be written back as a valid description."""


class WarningCode(str, enum.Enum):
    AXIS_NEAR_ZERO = "axis_near_zero"
    AXIS_NOT_NORMALIZED = "axis_not_normalized"
    MASS_CLAMPED = "mass_clamped"
    INERTIA_CLAMPED = "inertia_clamped"
    INERTIA_MODE_UNSPECIFIED = "inertia_mode_unspecified"
    UNKNOWN_JOINT_TYPE = "unknown_joint_type"
    REVOLUTE_LIMITS_COLLAPSED = "revolute_limits_collapsed"
    UNKNOWN_COLLISION_LINK = "unknown_collision_link"


@dataclass(frozen=True)
class NumericWarning:
    """A recoverable problem found while importing.

    Attributes:
        code: Machine-readable category.
        message: Human-readable explanation.
        subject: Name of the link or joint the warning refers to.
    """

    code: WarningCode
    message: str
    subject: Optional[str] = None

    def __str__(self) -> str:
        if self.subject is None:
            return self.message
        return f"[{self.subject}] {self.message}"


class WarningSink:
    """Ordered accumulator for ``NumericWarning`` records.

    Every recorded warning is also emitted on the module logger so that
    command-line use surfaces them without extra plumbing.
    """

    def __init__(self, logger: Optional[logging.Logger] = None):
        self._warnings: List[NumericWarning] = []
        self._logger = logger if logger is not None else console_logger

    def warn(
        self, code: WarningCode, message: str, subject: Optional[str] = None
    ) -> NumericWarning:
        warning = NumericWarning(code=code, message=message, subject=subject)
        self._warnings.append(warning)
        self._logger.warning(str(warning))
        return warning

    @property
    def warnings(self) -> Tuple[NumericWarning, ...]:
        return tuple(self._warnings)

    def by_code(self, code: WarningCode) -> Tuple[NumericWarning, ...]:
        return tuple(w for w in self._warnings if w.code == code)

    def __iter__(self) -> Iterator[NumericWarning]:
        return iter(self._warnings)

    def __len__(self) -> int:
        return len(self._warnings)
