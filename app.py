import os

os.environ.setdefault("NUMBA_THREADING_LAYER", "workqueue")
import argparse
import logging
import sys
from typing import List, Optional
from snapedit.kernel.system.logging import get_logger, setup_logging

logger = get_logger("snapedit.app")


def build_parser() -> argparse.ArgumentParser:
    from snapedit.features.effects.models import FilterType
    from snapedit.infrastructure.loaders.helpers import get_supported_wildcards

    parser = argparse.ArgumentParser(
        prog="snapedit",
        description="Headless batch editor: load, edit, export.",
        epilog=f"Supported inputs: {get_supported_wildcards()}",
    )
    parser.add_argument("source", help="Image to edit")
    parser.add_argument("--rotate", type=float, default=0.0, help="Clockwise rotation in degrees")
    parser.add_argument("--flip", choices=["h", "v"], help="Mirror horizontally or vertically")
    parser.add_argument("--crop-aspect", type=float, help="Centered crop to this width/height ratio")
    parser.add_argument("--filter", choices=[f.value for f in FilterType], default=FilterType.ORIGINAL.value)
    parser.add_argument("--brightness", type=float, default=0.0, help="-100..100")
    parser.add_argument("--contrast", type=float, default=1.0, help="0.5..1.5")
    parser.add_argument("--out", help="Output file name inside the export directory")
    parser.add_argument("-v", "--verbose", action="store_true")
    return parser


def run(argv: Optional[List[str]] = None) -> int:
    from PyQt6.QtCore import QCoreApplication
    from snapedit.desktop.controller import EditSession
    from snapedit.domain.errors import EditError
    from snapedit.features.effects.models import EffectsConfig
    from snapedit.features.geometry.models import FlipAxis
    from snapedit.services.export.persister import ExportPersister

    args = build_parser().parse_args(argv)
    setup_logging(level=logging.DEBUG if args.verbose else logging.INFO)

    app = QCoreApplication.instance() or QCoreApplication(sys.argv[:1])  # noqa: F841
    persister = ExportPersister()
    session = EditSession(persister=persister, threaded=False)
    failures: List[str] = []
    exported: List[str] = []

    session.load_failed.connect(lambda reason, msg: failures.append(f"{reason}: {msg}"))
    session.edit_failed.connect(lambda reason, msg: failures.append(f"{reason}: {msg}"))
    session.export_failed.connect(lambda reason, msg: failures.append(f"{reason}: {msg}"))
    session.export_finished.connect(exported.append)

    try:
        session.load(args.source)
        if not session.state.has_image:
            logger.error(f"Could not load {args.source}: {'; '.join(failures)}")
            return 1

        if args.crop_aspect is not None:
            session.crop_current_image(args.crop_aspect)
        if args.rotate:
            session.rotate_image(args.rotate)
        if args.flip:
            session.flip_image(FlipAxis.HORIZONTAL if args.flip == "h" else FlipAxis.VERTICAL)

        session.set_effects(EffectsConfig(brightness=args.brightness, contrast=args.contrast, filter=args.filter))
        session.export(file_name=args.out)
    except EditError as e:
        logger.error(f"Edit failed: {e}")
        return 1
    finally:
        session.shutdown()

    if failures or not exported:
        logger.error("; ".join(failures) or "Nothing exported")
        return 1

    print(persister.path_for(exported[0]))
    return 0


if __name__ == "__main__":
    sys.exit(run())
