"""Convert CAD curves into G-code toolpath programs."""

from .gcode import GCodeSettings, InvalidInputError, Program, Units, generate_program, validate_gcode
from .geometry import BoundingBox, Curve, CurveKind, Point
from .templates import MotionTemplate
from .toolpaths import GenerationCancelled

__all__ = [
    "BoundingBox",
    "Curve",
    "CurveKind",
    "GCodeSettings",
    "GenerationCancelled",
    "InvalidInputError",
    "MotionTemplate",
    "Point",
    "Program",
    "Units",
    "generate_program",
    "validate_gcode",
]
