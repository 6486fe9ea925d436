"""G-code program assembly."""

import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence

from .arcs import convert_splines
from .geometry import Curve, CurveKind
from .offset import offset_curves
from .templates import MotionTemplate
from .toolpaths import DepthPass, calculate_depth_passes, generate_pocket

logger = logging.getLogger(__name__)

# First characters a G-code word may start with
GCODE_WORD_LETTERS = "GMSFXYZIJKRABCDHPTEO"


class Units(Enum):
    MM = "mm"
    INCH = "inch"


class InvalidInputError(ValueError):
    """Raised when there is nothing to generate a program from."""


@dataclass(frozen=True)
class GCodeSettings:
    """Settings for G-code generation."""
    feed_rate: float = 100.0  # length/min
    spindle_speed: int = 12000  # RPM
    tool_diameter: float = 3.0
    units: Units = Units.MM
    safe_z: float = 10.0  # Safe retract height
    plunge_depth: float = -5.0  # Cutting depth for single-pass programs
    retract_z: float = 5.0  # Retract height after each depth pass
    template: Optional[MotionTemplate] = None  # None uses the built-in commands

    # Tool radius compensation
    enable_path_offset: bool = False
    path_offset_amount: Optional[float] = None  # None uses the tool radius
    offset_inward: bool = False

    # Pocket clearing
    enable_pocket: bool = False
    pocket_stepover: float = 1.0
    detect_islands: bool = False

    # Multi-pass depth
    enable_multi_pass: bool = False
    total_depth: float = 0.0
    depth_per_pass: float = 1.0

    # Spline conversion
    convert_splines: bool = False
    arc_tolerance: float = 0.01

    @property
    def offset_amount(self) -> float:
        if self.path_offset_amount is None:
            return self.tool_diameter / 2
        return self.path_offset_amount

    @property
    def active_features(self) -> list[str]:
        features = []
        if self.enable_path_offset:
            direction = "inward" if self.offset_inward else "outward"
            features.append(f"Path Offset ({self._fmt(self.offset_amount)} {direction})")
        if self.enable_pocket:
            islands = ", islands" if self.detect_islands else ""
            features.append(f"Pocket (stepover {self._fmt(self.pocket_stepover)}{islands})")
        if self.enable_multi_pass:
            features.append(
                f"Multi-Pass ({self._fmt(self.total_depth)} total, "
                f"{self._fmt(self.depth_per_pass)} per pass)"
            )
        if self.convert_splines:
            features.append(f"Spline to Arc (tolerance {self._fmt(self.arc_tolerance)})")
        return features

    @staticmethod
    def _fmt(value: float) -> str:
        return f"{value:.4f}".rstrip("0").rstrip(".")


@dataclass(frozen=True)
class Program:
    """A generated G-code program and the settings it was made with."""
    code: str
    lines: tuple[str, ...]
    feed_rate: float
    spindle_speed: int
    tool_diameter: float
    generated_at: datetime
    settings: GCodeSettings

    def save(self, path: Path) -> None:
        """Save G-code to a file."""
        with open(path, "w") as f:
            f.write(self.code)


class GCodeBuilder:
    """Builds G-code lines, through a MotionTemplate when one is configured."""

    def __init__(self, settings: Optional[GCodeSettings] = None):
        self.settings = settings or GCodeSettings()
        self.template = self.settings.template
        self.lines: list[str] = []
        # Program-wide: only the very first point gets a rapid + plunge
        self.first_point: bool = True
        self.tool_down: bool = False
        self._pos_z: Optional[float] = None

    @property
    def length_unit(self) -> str:
        return "mm" if self.settings.units == Units.MM else "in"

    def _coords_equal(self, a: Optional[float], b: float) -> bool:
        """Check if coordinates are equal within tolerance."""
        if a is None:
            return False
        return abs(a - b) < 0.0001

    def _write(self, line: str) -> None:
        """Write a line of G-code."""
        self.lines.append(line)

    def _format_coord(self, value: float) -> str:
        """Format a value without trailing zeros."""
        return f"{round(value, 4) + 0.0:.4f}".rstrip("0").rstrip(".")

    def _format_axis(self, value: float) -> str:
        """Format a plane coordinate with three decimals, never as -0.000."""
        return f"{round(value, 3) + 0.0:.3f}"

    def comment(self, text: str) -> "GCodeBuilder":
        """Add a comment."""
        self._write(f"; {text}" if text else ";")
        return self

    def header(self) -> "GCodeBuilder":
        """Write comment block, units and positioning mode."""
        s = self.settings
        unit = self.length_unit
        features = s.active_features

        self.comment("Generated by curve2gcode")
        self.comment(f"Feed Rate: {self._format_coord(s.feed_rate)} {unit}/min")
        self.comment(f"Spindle Speed: {s.spindle_speed} RPM")
        self.comment(f"Tool Diameter: {self._format_coord(s.tool_diameter)} {unit}")
        self.comment(f"Features: {', '.join(features) if features else 'none'}")
        self.comment("")

        if s.units == Units.MM:
            self._write("G21 ; Metric")
        else:
            self._write("G20 ; Inches")
        self._write("G90 ; Absolute positioning")
        return self

    def spindle_on(self) -> "GCodeBuilder":
        """Start the spindle and move to safe height."""
        s = self.settings
        if self.template is not None:
            self._write(self.template.spindle_start(s.spindle_speed))
        else:
            self._write(f"S{s.spindle_speed} ; Set spindle speed")
            self._write("M3 ; Spindle on")
            self._write(f"F{self._format_coord(s.feed_rate)} ; Set feed rate")
        self.rapid_z(s.safe_z, "Move to safe height")
        return self

    def spindle_off(self) -> "GCodeBuilder":
        """Turn spindle off."""
        if self.template is not None:
            self._write(self.template.spindle_stop())
        else:
            self._write("M5 ; Spindle off")
        return self

    def footer(self) -> "GCodeBuilder":
        """Return to safe height and end the program."""
        self.rapid_z(self.settings.safe_z, "Move to safe height")
        self._write("M30 ; Program end")
        return self

    def rapid_z(self, z: float, note: str = "Rapid move") -> "GCodeBuilder":
        """Rapid move to Z position."""
        if self._coords_equal(self._pos_z, z):
            return self  # Skip redundant move
        if self.template is not None:
            self._write(self.template.depth_fast(z))
        else:
            self._write(f"G0 Z{self._format_coord(z)} ; {note}")
        self._pos_z = z
        self.tool_down = False
        return self

    def rapid_xy(self, x: float, y: float) -> "GCodeBuilder":
        """Rapid move to XY position."""
        if self.template is not None:
            self._write(self.template.plane_fast(x, y))
        else:
            self._write(f"G0 X{self._format_axis(x)} Y{self._format_axis(y)} ; Rapid move to start")
        return self

    def plunge(self, z: float, feed: Optional[float] = None) -> "GCodeBuilder":
        """Move down to cutting depth.

        Without a template and without a feed this is the fixed rapid
        plunge; otherwise it is a feed move.
        """
        if self.template is not None:
            self._write(self.template.depth_linear(z, feed if feed is not None else self.settings.feed_rate))
        elif feed is None:
            self._write(f"G0 Z{self._format_coord(z)} ; Move to depth")
        else:
            self._write(f"G1 Z{self._format_coord(z)} F{self._format_coord(feed)} ; Plunge")
        self._pos_z = z
        self.tool_down = True
        return self

    def linear(self, x: float, y: float, z: Optional[float] = None) -> "GCodeBuilder":
        """Feed move in the plane, optionally carrying Z."""
        feed = self.settings.feed_rate
        if self.template is not None:
            # Templates may ask for {Z} even on flat moves; fill it with the current depth
            self._write(self.template.plane_linear(x, y, feed, z if z is not None else self._pos_z))
        elif z is None:
            self._write(f"G1 X{self._format_axis(x)} Y{self._format_axis(y)} ; Linear move")
        else:
            self._write(f"G1 X{self._format_axis(x)} Y{self._format_axis(y)} Z{self._format_axis(z)} ; Linear move")
        if z is not None:
            self._pos_z = z
        return self

    def arc(self, x: float, y: float, i: float, j: float, clockwise: bool) -> "GCodeBuilder":
        """Circular interpolation to (x, y) around start + (i, j)."""
        if self.template is not None:
            self._write(self.template.arc(x, y, i, j, self.settings.feed_rate, clockwise, self._pos_z))
        else:
            cmd = "G2" if clockwise else "G3"
            self._write(
                f"{cmd} X{self._format_axis(x)} Y{self._format_axis(y)} "
                f"I{self._format_axis(i)} J{self._format_axis(j)} ; Arc move"
            )
        return self

    def get_gcode(self) -> str:
        """Get the generated G-code as a string."""
        return "\n".join(self.lines)


def prepare_curves(
    curves: Sequence[Curve],
    settings: GCodeSettings,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> list[Curve]:
    """Run the enabled geometry stages: splines -> offset -> pocket."""
    result = list(curves)

    if settings.convert_splines:
        result = convert_splines(result, settings.arc_tolerance)

    if settings.enable_path_offset:
        result = offset_curves(result, settings.offset_amount, settings.offset_inward)

    if settings.enable_pocket:
        pocket = generate_pocket(
            result,
            settings.pocket_stepover,
            detect_islands=settings.detect_islands,
            should_cancel=should_cancel,
        )
        logger.debug("Pocket added %d curves", len(pocket))
        result = result + pocket

    return result


class _BodyEmitter:
    """Emits the cutting moves for a curve list at one depth.

    depth=None means single-pass: lines keep their own Z and the plunge
    goes to the configured plunge depth. With a depth every Z is replaced
    by it and the plunge feed is halved.
    """

    def __init__(self, builder: GCodeBuilder, depth: Optional[float] = None):
        self.builder = builder
        self.settings = builder.settings
        self.depth = depth

    def _plunge(self) -> None:
        b = self.builder
        if self.depth is None:
            feed = self.settings.feed_rate if b.template is not None else None
            b.plunge(self.settings.plunge_depth, feed)
        else:
            b.plunge(self.depth, self.settings.feed_rate / 2)

    def _start_cut(self, x: float, y: float) -> None:
        """Rapid to a start point and plunge; retracts first if already cutting."""
        b = self.builder
        if b.tool_down:
            b.rapid_z(self.settings.safe_z, "Move to safe height")
        b.rapid_xy(x, y)
        self._plunge()
        b.first_point = False

    def emit(self, curves: Sequence[Curve]) -> None:
        for curve in curves:
            if len(curve.points) < 1:
                continue
            handler = getattr(self, f"_emit_{curve.kind.value}", None)
            if handler is None:
                logger.warning("Skipping %s curve: not supported by the assembler", curve.kind.value)
                continue
            handler(curve)

    def _emit_line(self, curve: Curve) -> None:
        for i, (x, y, z) in enumerate(curve.points):
            if self.builder.first_point and i == 0:
                self._start_cut(x, y)
            else:
                self.builder.linear(x, y, z if self.depth is None else self.depth)

    def _emit_polyline(self, curve: Curve) -> None:
        # Polylines stay flat at the current cutting depth
        for i, (x, y, _z) in enumerate(curve.points):
            if self.builder.first_point and i == 0:
                self._start_cut(x, y)
            else:
                self.builder.linear(x, y)

    def _emit_circle(self, curve: Curve) -> None:
        if curve.radius <= 0:
            logger.warning("Skipping circle with non-positive radius %.4f", curve.radius)
            return
        cx, cy = curve.points[0, 0], curve.points[0, 1]
        r = curve.radius
        self._start_cut(cx + r, cy)
        # Full circle as a single interpolation back to the start point
        self.builder.arc(cx + r, cy, -r, 0.0, clockwise=True)

    def _emit_arc(self, curve: Curve) -> None:
        if len(curve.points) < 3:
            logger.warning("Skipping arc with %d points", len(curve.points))
            return
        center, start, end = curve.points[0], curve.points[1], curve.points[2]
        i = center[0] - start[0]
        j = center[1] - start[1]
        clockwise = curve.start_angle < curve.end_angle
        self._start_cut(start[0], start[1])
        self.builder.arc(end[0], end[1], i, j, clockwise)


def _emit_multi_pass(builder: GCodeBuilder, curves: Sequence[Curve], passes: Sequence[DepthPass]) -> None:
    unit = builder.length_unit
    for depth_pass in passes:
        builder.comment(f"Pass {depth_pass.pass_number} - Depth: {depth_pass.depth:.3f} {unit}")
        builder.first_point = True
        _BodyEmitter(builder, depth_pass.depth).emit(curves)
        builder.rapid_z(builder.settings.retract_z, "Retract")


def generate_program(
    curves: Sequence[Curve],
    settings: Optional[GCodeSettings] = None,
    should_cancel: Optional[Callable[[], bool]] = None,
) -> Program:
    """Convert a curve list into a G-code program.

    Args:
        curves: Curves from the drawing, in cutting order
        settings: Generation settings; defaults are used if None
        should_cancel: Optional hook polled by the pocket loop

    Returns:
        The generated Program

    Raises:
        InvalidInputError: If curves is empty or None
        GenerationCancelled: If should_cancel stopped pocket generation
    """
    if not curves:
        raise InvalidInputError("No curves to convert")

    settings = settings if settings is not None else GCodeSettings()

    if not settings.convert_splines:
        splines = sum(1 for c in curves if c.kind == CurveKind.SPLINE)
        if splines:
            logger.warning("Spline conversion is off; %d spline curves will be skipped", splines)

    toolpath = prepare_curves(curves, settings, should_cancel)

    builder = GCodeBuilder(settings)
    builder.header()
    builder.spindle_on()

    if settings.enable_multi_pass:
        passes = calculate_depth_passes(settings.total_depth, settings.depth_per_pass)
        if not passes:
            logger.warning(
                "No depth passes for total depth %s and %s per pass; body is empty",
                settings.total_depth, settings.depth_per_pass,
            )
        _emit_multi_pass(builder, toolpath, passes)
    else:
        _BodyEmitter(builder).emit(toolpath)

    builder.rapid_z(settings.safe_z, "Move to safe height")
    builder.spindle_off()
    builder.footer()

    code = builder.get_gcode()
    logger.info("Generated %d lines of G-code from %d curves", len(builder.lines), len(toolpath))

    return Program(
        code=code,
        lines=tuple(builder.lines),
        feed_rate=settings.feed_rate,
        spindle_speed=settings.spindle_speed,
        tool_diameter=settings.tool_diameter,
        generated_at=datetime.now(),
        settings=settings,
    )


def validate_gcode(gcode: str) -> bool:
    """Loose sanity check: every code line starts with a G-code word letter."""
    if not gcode:
        return False

    for line in gcode.split("\n"):
        trimmed = line.strip()
        if not trimmed or trimmed.startswith(";") or trimmed.startswith("("):
            continue
        if trimmed[0].upper() not in GCODE_WORD_LETTERS:
            return False

    return True
