from functools import partial
from unittest import mock
import pytest
from PIL import Image
from app import build_parser, run
from snapedit.services.export.persister import ExportPersister


@pytest.fixture
def source(tmp_path):
    path = tmp_path / "photo.png"
    Image.new("RGB", (120, 80), (200, 100, 50)).save(path)
    return str(path)


def test_parser_defaults():
    args = build_parser().parse_args(["photo.jpg"])
    assert args.rotate == 0.0
    assert args.flip is None
    assert args.filter == "ORIGINAL"
    assert args.contrast == 1.0


def test_parser_rejects_unknown_filter():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["photo.jpg", "--filter", "SEPIA"])


def test_run_exports_edited_image(source, tmp_path, capsys):
    out_dir = tmp_path / "out"
    with mock.patch(
        "snapedit.services.export.persister.ExportPersister",
        partial(ExportPersister, export_dir=str(out_dir)),
    ):
        code = run([source, "--rotate", "90", "--flip", "h", "--filter", "BW", "--out", "result.jpg"])

    assert code == 0
    saved = out_dir / "result.jpg"
    assert capsys.readouterr().out.strip() == str(saved)
    with Image.open(saved) as img:
        assert img.size == (80, 120)


def test_run_reports_missing_source(tmp_path):
    assert run([str(tmp_path / "nope.png")]) == 1
