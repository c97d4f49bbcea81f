"""Build a SymmetryReport from a finished detection run."""

from __future__ import annotations

from packages.core.types import DetectedSymmetry, SymmetryReport, Vec3
from packages.symmetry.detection import ReflectionalSymmetryDetector


def build_symmetry_report(
    detector: ReflectionalSymmetryDetector,
    *,
    source_file: str,
    point_count: int,
) -> SymmetryReport:
    """Assemble detector outputs into a :class:`SymmetryReport`."""
    symmetries, filtered_ids, merged_ids = detector.get_symmetries()
    filtered, merged = set(filtered_ids), set(merged_ids)
    points_ds, _ = detector.downsampled_cloud

    entries = [
        DetectedSymmetry(
            index=i,
            normal=sym.normal,
            point=sym.point,
            reference_point=Vec3.from_array(ref),
            scores=scores,
            filtered=i in filtered,
            merged=i in merged,
        )
        for i, (sym, ref, scores) in enumerate(
            zip(symmetries, detector.reference_points, detector.scores)
        )
    ]
    return SymmetryReport(
        source_file=source_file,
        point_count=point_count,
        downsampled_point_count=len(points_ds),
        parameters=detector.parameters,
        symmetries=entries,
        filtered_ids=filtered_ids,
        merged_ids=merged_ids,
    )
