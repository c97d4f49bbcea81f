"""Exceptions raised by the symmetry-detection pipeline."""

from __future__ import annotations


class SymmetryDetectionError(Exception):
    """Base class for detection errors."""


class ConfigurationError(SymmetryDetectionError):
    """A required input (cloud, occupancy map) is missing."""


class SequencingError(SymmetryDetectionError):
    """A pipeline stage was invoked before the stage it depends on."""


class DegenerateGeometryError(SymmetryDetectionError):
    """Too few points or correspondences to fit a plane.

    Raised inside refinement and handled there: the candidate is kept
    unrefined instead of failing the run.
    """
