import unittest
from snapedit.features.annotations.models import Annotation, StickerPayload, TextPayload
from snapedit.features.geometry.models import FlipAxis, GeometryEdit, NormalizedRect
from snapedit.services.view.coordinate_mapping import CoordinateMapper


class TestCoordinateMapper(unittest.TestCase):
    def setUp(self):
        # (height, width)
        self.dims = (80, 100)

    def test_center_crop_keeps_centered_annotations(self):
        text = Annotation.text("hi", x=0.5, y=0.5)
        edit = GeometryEdit.crop(NormalizedRect(0.25, 0.25, 0.75, 0.75))
        (mapped,) = CoordinateMapper.map_annotations([text], edit, self.dims, (40, 50))
        self.assertAlmostEqual(mapped.x, 0.5)
        self.assertAlmostEqual(mapped.y, 0.5)

    def test_crop_moves_offcenter_annotation_and_scales_sticker(self):
        sticker = Annotation.sticker("star", x=0.3, y=0.25, scale=2.0)
        edit = GeometryEdit.crop(NormalizedRect(0.2, 0.0, 0.7, 0.5))
        (mapped,) = CoordinateMapper.map_annotations([sticker], edit, self.dims, (40, 50))

        # x: (30 - 20) / 50, y: (20 - 0) / 40
        self.assertAlmostEqual(mapped.x, 0.2)
        self.assertAlmostEqual(mapped.y, 0.5)
        self.assertIsInstance(mapped.payload, StickerPayload)
        self.assertAlmostEqual(mapped.payload.scale_x, 1.0)
        self.assertAlmostEqual(mapped.payload.scale_y, 1.0)

    def test_crop_leaves_text_style_alone(self):
        text = Annotation.text("hi", x=0.5, y=0.5, size_ratio=0.05)
        edit = GeometryEdit.crop(NormalizedRect(0.25, 0.25, 0.75, 0.75))
        (mapped,) = CoordinateMapper.map_annotations([text], edit, self.dims, (40, 50))
        self.assertEqual(mapped.payload, text.payload)

    def test_two_quarter_turns_equal_half_turn(self):
        text = Annotation.text("a", x=0.6, y=0.7)
        sticker = Annotation.sticker("b", x=0.6, y=0.7)
        edit = GeometryEdit.rotate(90)

        step1 = CoordinateMapper.map_annotations([text, sticker], edit, (80, 100), (100, 80))
        self.assertAlmostEqual(step1[0].x, 0.3)
        self.assertAlmostEqual(step1[0].y, 0.6)

        step2 = CoordinateMapper.map_annotations(step1, edit, (100, 80), (80, 100))
        for mapped in step2:
            self.assertAlmostEqual(mapped.x, 0.4)
            self.assertAlmostEqual(mapped.y, 0.3)
            self.assertAlmostEqual(mapped.rotation, 180.0)

    def test_rotation_keeps_identity(self):
        text = Annotation.text("a", x=0.1, y=0.1)
        (mapped,) = CoordinateMapper.map_annotations([text], GeometryEdit.rotate(90), (80, 100), (100, 80))
        self.assertEqual(mapped.annotation_id, text.annotation_id)

    def test_horizontal_flip_uses_extent(self):
        text = Annotation.text("a", x=0.1, y=0.3)
        from dataclasses import replace

        text = replace(text, extent_w=0.2, extent_h=0.1)
        (mapped,) = CoordinateMapper.map_annotations([text], GeometryEdit.flip(FlipAxis.HORIZONTAL), self.dims, self.dims)
        self.assertAlmostEqual(mapped.x, 0.7)
        self.assertAlmostEqual(mapped.y, 0.3)
        self.assertIsInstance(mapped.payload, TextPayload)

    def test_flip_negates_sticker_scale(self):
        sticker = Annotation.sticker("b", x=0.2, y=0.2, scale=1.5)
        (h,) = CoordinateMapper.map_annotations([sticker], GeometryEdit.flip(FlipAxis.HORIZONTAL), self.dims, self.dims)
        self.assertAlmostEqual(h.payload.scale_x, -1.5)
        self.assertAlmostEqual(h.payload.scale_y, 1.5)

        (v,) = CoordinateMapper.map_annotations([sticker], GeometryEdit.flip(FlipAxis.VERTICAL), self.dims, self.dims)
        self.assertAlmostEqual(v.payload.scale_y, -1.5)
        self.assertAlmostEqual(v.y, 0.8)

    def test_double_flip_restores_position(self):
        sticker = Annotation.sticker("b", x=0.2, y=0.2)
        edit = GeometryEdit.flip(FlipAxis.VERTICAL)
        once = CoordinateMapper.map_annotations([sticker], edit, self.dims, self.dims)
        (twice,) = CoordinateMapper.map_annotations(once, edit, self.dims, self.dims)
        self.assertAlmostEqual(twice.y, 0.2)
        self.assertAlmostEqual(twice.payload.scale_y, 1.0)


def test_annotation_dict_round_trip_keeps_variant():
    sticker = Annotation.sticker("heart", x=0.1, y=0.9, scale=-2.0)
    text = Annotation.text("hello", color="#FF0000", bold=True, font_family="SERIF")

    assert Annotation.from_dict(sticker.to_dict()) == sticker
    restored = Annotation.from_dict(text.to_dict())
    assert restored == text
    assert isinstance(restored.payload, TextPayload)


def test_annotation_rejects_mismatched_payload():
    import pytest
    from snapedit.features.annotations.models import AnnotationKind

    with pytest.raises(TypeError):
        Annotation(AnnotationKind.TEXT, StickerPayload("x"))
