"""CLI entry-point for the symmetry-detection pipeline."""

from __future__ import annotations

import logging
import math
from pathlib import Path

import click

from packages.core.types import DetectionParameters
from packages.symmetry.process import process_scan_to_json


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log per-candidate details.")
def main(verbose: bool):
    """Reflectional symmetry detection for point clouds."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(levelname)s | %(name)s | %(message)s",
    )


@main.command()
@click.argument("input_file", type=click.Path(exists=True, dir_okay=False))
@click.option("-o", "--output", "output_file", default=None, help="Output JSON path.")
@click.option(
    "--params", "params_file", default=None,
    type=click.Path(exists=True, dir_okay=False),
    help="JSON file with detection parameters.",
)
@click.option(
    "--viewpoint", nargs=3, type=float, default=(0.0, 0.0, 0.0), show_default=True,
    help="Sensor position used to build the occupancy map.",
)
@click.option("--voxel-size", type=float, default=None, help="Down-sampling voxel size (metres).")
@click.option("--angle-divisions", type=int, default=None, help="Rotations sampled per reference axis.")
@click.option("--max-angle-diff", type=float, default=None, help="Merge angle threshold (degrees).")
@click.option(
    "--occupancy-voxel-size", default=0.02, show_default=True, help="Occupancy map voxel size (metres).",
)
def detect(
    input_file: str,
    output_file: str | None,
    params_file: str | None,
    viewpoint: tuple[float, float, float],
    voxel_size: float | None,
    angle_divisions: int | None,
    max_angle_diff: float | None,
    occupancy_voxel_size: float,
):
    """Detect symmetry planes in a point-cloud file and print a JSON report."""
    if params_file is not None:
        params = DetectionParameters.model_validate_json(Path(params_file).read_text())
    else:
        params = DetectionParameters()

    overrides: dict = {}
    if voxel_size is not None:
        overrides["voxel_size"] = voxel_size
    if angle_divisions is not None:
        overrides["num_angle_divisions"] = angle_divisions
    if max_angle_diff is not None:
        overrides["symmetry_min_angle_diff"] = math.radians(max_angle_diff)
    if overrides:
        params = DetectionParameters.model_validate({**params.model_dump(), **overrides})

    json_str = process_scan_to_json(
        input_file,
        output_path=output_file,
        viewpoint=viewpoint,
        params=params,
        occupancy_voxel_size=occupancy_voxel_size,
    )
    click.echo(json_str)


if __name__ == "__main__":
    main()
