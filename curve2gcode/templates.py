"""User-editable motion templates and the placeholder formatter.

A template is plain G-code text with placeholders such as ``{X}`` or
``{X:F3}``. The format part uses the .NET-style numeric specifiers found
in most controller documentation (F3 = three decimals, D4 = zero padded
integer, ...); anything else is handed to Python's ``format()``.
"""

import dataclasses
import numbers
import re
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Iterable, Mapping, Optional, Union

# Names the assembler and the reverse parser know about
MOTION_VARIABLES = ("X", "Y", "Z", "I", "J", "F", "S")

_PLACEHOLDER_RE = re.compile(r"\{([A-Za-z_][A-Za-z0-9_]*)(?::([^}]+))?\}")
_STANDARD_FORMAT_RE = re.compile(r"^([FfNnEeDdGg])(\d{0,2})$")
_CUSTOM_FORMAT_RE = re.compile(r"^[0#,]*(\.[0#]*)?$")
_VALUE_RES = {
    name: re.compile(name + r"([-+]?[0-9]*\.?[0-9]+)") for name in MOTION_VARIABLES
}
_COMMENT_RE = re.compile(r"\([^)]*\)")


@dataclass(frozen=True)
class Placeholder:
    """A ``{NAME}`` or ``{NAME:FORMAT}`` slot in a template."""
    name: str
    fmt: Optional[str]
    text: str  # original placeholder text, kept for unmatched names


Token = Union[str, Placeholder]


@lru_cache(maxsize=256)
def parse_template(template: str) -> tuple[Token, ...]:
    """Split a template into literal text and placeholders."""
    tokens: list[Token] = []
    pos = 0
    for match in _PLACEHOLDER_RE.finditer(template):
        if match.start() > pos:
            tokens.append(template[pos:match.start()])
        tokens.append(Placeholder(match.group(1), match.group(2), match.group(0)))
        pos = match.end()
    if pos < len(template):
        tokens.append(template[pos:])
    return tuple(tokens)


def _default_text(value: Any) -> str:
    """Plain conversion: integral numbers drop their fractional part."""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, numbers.Integral):
        return str(int(value))
    if isinstance(value, numbers.Real):
        f = float(value)
        if f.is_integer() and abs(f) < 1e15:
            return str(int(f))
        return repr(f)
    return str(value)


def format_value(value: Any, fmt: Optional[str] = None) -> str:
    """Render one value under an optional numeric format specifier.

    Supported specifiers:
        F<n>  fixed point, n decimals (default 2)
        N<n>  fixed point with thousands separators
        E<n>  scientific notation
        D<n>  integer, zero padded to n digits
        G<n>  general, n significant digits
        0.00  custom pattern, decimals counted after the point
    Anything else is passed to Python's format().
    """
    if value is None:
        return ""
    if fmt is None:
        return _default_text(value)

    match = _STANDARD_FORMAT_RE.match(fmt)
    if match:
        kind = match.group(1).upper()
        digits = int(match.group(2)) if match.group(2) else None

        if kind == "F":
            return f"{float(value):.{2 if digits is None else digits}f}"
        if kind == "N":
            return f"{float(value):,.{2 if digits is None else digits}f}"
        if kind == "E":
            return f"{float(value):.{6 if digits is None else digits}E}"
        if kind == "D":
            number = int(round(value))
            sign = "-" if number < 0 else ""
            return f"{sign}{abs(number):0{digits or 1}d}"
        # G
        if digits:
            return f"{float(value):.{digits}g}"
        return _default_text(value)

    if _CUSTOM_FORMAT_RE.match(fmt) and ("0" in fmt or "#" in fmt):
        decimals = len(fmt.split(".", 1)[1]) if "." in fmt else 0
        grouping = "," if "," in fmt.split(".", 1)[0] else ""
        return f"{float(value):{grouping}.{decimals}f}"

    return format(value, fmt)


def format_command(template: str, values: Mapping[str, Any]) -> str:
    """Substitute values into a template.

    Placeholders whose name is not in values are left as they are.

    >>> format_command("G0 X{X:F3} Y{Y:F3}", {"X": 1.5, "Y": -2})
    'G0 X1.500 Y-2.000'
    """
    if not template:
        return ""

    parts = []
    for token in parse_template(template):
        if isinstance(token, str):
            parts.append(token)
        elif token.name in values:
            parts.append(format_value(values[token.name], token.fmt))
        else:
            parts.append(token.text)
    return "".join(parts)


def parse_motion(line: str) -> dict[str, float]:
    """Pull X/Y/Z/I/J/F/S words back out of a rendered G-code line.

    Comments (``; ...`` and ``( ... )``) are ignored. Returns an empty dict
    if the line carries none of the known words.
    """
    code = _COMMENT_RE.sub("", line).split(";", 1)[0]
    values = {}
    for name, pattern in _VALUE_RES.items():
        match = pattern.search(code)
        if match:
            values[name] = float(match.group(1))
    return values


@dataclass(frozen=True)
class MotionTemplate:
    """The eight command templates used to render a program."""
    pre_cut: str = "M4 S{S}"
    post_cut: str = "M5"
    plane_fast_move: str = "G0 X{X:F3} Y{Y:F3}"
    plane_linear_move: str = "G1 X{X:F3} Y{Y:F3} F{F:F3}"
    depth_fast_move: str = "G0 Z{Z:F3}"
    depth_linear_move: str = "G1 Z{Z:F3} F{F:F3}"
    cw_arc_move: str = "G2 X{X:F3} Y{Y:F3} I{I:F3} J{J:F3} F{F:F3}"
    ccw_arc_move: str = "G3 X{X:F3} Y{Y:F3} I{I:F3} J{J:F3} F{F:F3}"

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in dataclasses.fields(cls))

    @classmethod
    def from_dict(cls, data: Mapping[str, str]) -> "MotionTemplate":
        """Build a template from a mapping; missing entries keep their defaults."""
        unknown = set(data) - set(cls.field_names())
        if unknown:
            raise KeyError(f"Unknown template entries: {', '.join(sorted(unknown))}")
        return cls(**{k: str(v) for k, v in data.items()})

    def to_dict(self) -> dict[str, str]:
        return dataclasses.asdict(self)

    def spindle_start(self, speed: float) -> str:
        return format_command(self.pre_cut, {"S": speed})

    def spindle_stop(self) -> str:
        return format_command(self.post_cut, {})

    def plane_fast(self, x: float, y: float) -> str:
        return format_command(self.plane_fast_move, {"X": x, "Y": y})

    def plane_linear(self, x: float, y: float, feed: float, z: Optional[float] = None) -> str:
        values = {"X": x, "Y": y, "F": feed}
        if z is not None:
            values["Z"] = z
        return format_command(self.plane_linear_move, values)

    def depth_fast(self, z: float) -> str:
        return format_command(self.depth_fast_move, {"Z": z})

    def depth_linear(self, z: float, feed: float) -> str:
        return format_command(self.depth_linear_move, {"Z": z, "F": feed})

    def arc(
        self,
        x: float,
        y: float,
        i: float,
        j: float,
        feed: float,
        clockwise: bool,
        z: Optional[float] = None,
    ) -> str:
        template = self.cw_arc_move if clockwise else self.ccw_arc_move
        values = {"X": x, "Y": y, "I": i, "J": j, "F": feed}
        if z is not None:
            values["Z"] = z
        return format_command(template, values)


def apply_template(lines: Iterable[str], template: str) -> list[str]:
    """Re-render existing motion lines through another template.

    Lines with no recognizable words are passed through unchanged.
    """
    formatted = []
    for line in lines:
        values = parse_motion(line)
        formatted.append(format_command(template, values) if values else line)
    return formatted
