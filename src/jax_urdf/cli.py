"""Command-line interface: convert or inspect URDF files."""

import argparse
import logging
import sys
from typing import List, Optional

from jax_urdf.config import ImportSettings
from jax_urdf.optimize import merged_groups
from jax_urdf.pipeline import export_urdf, import_urdf
from jax_urdf.transforms.conventions import AxisConvention

console_logger = logging.getLogger(__name__)


def _load_settings(args) -> ImportSettings:
    settings = ImportSettings.from_yaml(args.config) if args.config else ImportSettings()
    changes = {}
    if args.convention is not None:
        changes["convention"] = AxisConvention(args.convention)
    if args.no_optimize:
        changes["optimize_fixed_joints"] = False
    return settings.replace(**changes) if changes else settings


def _convert(args) -> int:
    settings = _load_settings(args)
    result = import_urdf(args.input, settings)
    if not result.ok:
        print(f"error: {result.error}", file=sys.stderr)
        return 1
    export_urdf(result.model, args.output, settings)
    print(f"Wrote {args.output} ({len(result.warnings)} warning(s))")
    return 0


def _inspect(args) -> int:
    settings = _load_settings(args)
    result = import_urdf(args.input, settings)
    if not result.ok:
        print(f"error: {result.error}", file=sys.stderr)
        return 1
    model = result.model
    print(f"robot: {model.name}")
    print(f"root: {model.link_names[model.root]}")
    print(f"links: {model.num_links}, joints: {len(model.joint_names)}")
    for group in merged_groups(model):
        body = model.body(group[0])
        merged = f" (+ {', '.join(group[1:])})" if len(group) > 1 else ""
        print(f"  body {group[0]}{merged}: mass={float(body.mass):.6g}")
    for warning in result.warnings:
        print(f"warning: {warning}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="jax-urdf", description="Import, optimize and re-export URDF robot descriptions."
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(sub):
        sub.add_argument("input", type=str, help="Path to the input URDF file.")
        sub.add_argument("--config", type=str, default=None, help="YAML file with import settings.")
        sub.add_argument(
            "--convention",
            type=str,
            choices=[c.value for c in AxisConvention],
            default=None,
            help="Target axis convention of the in-memory model.",
        )
        sub.add_argument(
            "--no-optimize", action="store_true", help="Keep rigidly attached bodies separate."
        )

    convert = subparsers.add_parser("convert", help="Import a URDF and write it back out.")
    add_common(convert)
    convert.add_argument("output", type=str, help="Path of the URDF file to write.")
    convert.set_defaults(func=_convert)

    inspect = subparsers.add_parser("inspect", help="Print the structure and bodies of a URDF.")
    add_common(inspect)
    inspect.set_defaults(func=_inspect)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
