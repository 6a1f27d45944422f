import unittest
import numpy as np
import pytest
from snapedit.kernel.caching.logic import CacheEntry
from snapedit.kernel.caching.manager import ImageCache
from snapedit.kernel.image.raster import PixelFormat, Raster


def _raster(w: int = 32, h: int = 32, fmt: PixelFormat = PixelFormat.RGBA8888) -> Raster:
    return Raster.from_array(np.zeros((h, w, 3), dtype=np.uint8), fmt)


class TestCacheEntry(unittest.TestCase):
    def test_size_counts_both_tiers(self):
        entry = CacheEntry(_raster(fmt=PixelFormat.RGB565), _raster())
        # 2 KB preview + 4 KB full
        self.assertEqual(entry.size_kb, 6)

    def test_size_is_at_least_one(self):
        self.assertEqual(CacheEntry(_raster(1, 1)).size_kb, 1)

    def test_size_is_fixed_at_construction(self):
        preview = _raster()
        entry = CacheEntry(preview)
        preview.recycle()
        self.assertEqual(entry.size_kb, 4)
        self.assertFalse(entry.is_usable)


class TestImageCache(unittest.TestCase):
    def setUp(self):
        self.cache = ImageCache(budget_kb=10)

    def test_put_grows_usage_by_entry_size(self):
        entry = CacheEntry(_raster())
        self.cache.put("a", entry)
        self.assertEqual(self.cache.size_kb, entry.size_kb)
        self.assertIn("a", self.cache)
        self.assertIs(self.cache.get("a"), entry)

    def test_put_retains_and_remove_releases(self):
        preview = _raster()
        self.cache.put("a", CacheEntry(preview))
        self.assertEqual(preview.ref_count, 2)

        self.cache.remove("a")
        self.assertEqual(preview.ref_count, 1)
        self.assertEqual(self.cache.size_kb, 0)
        self.assertIsNone(self.cache.remove("a"))

    def test_lru_eviction_respects_budget(self):
        a, b, c = _raster(), _raster(), _raster()
        self.cache.put("a", CacheEntry(a))
        self.cache.put("b", CacheEntry(b))
        self.cache.get("a")
        self.cache.put("c", CacheEntry(c))

        self.assertIn("a", self.cache)
        self.assertNotIn("b", self.cache)
        self.assertIn("c", self.cache)
        self.assertLessEqual(self.cache.size_kb, self.cache.budget_kb)
        # Evicted entry dropped its reference, caller still owns theirs
        self.assertEqual(b.ref_count, 1)

    def test_eviction_releases_both_tiers(self):
        preview, full = _raster(16, 16, PixelFormat.RGB565), _raster()
        self.cache.put("a", CacheEntry(preview, full))
        preview.release()
        full.release()

        self.cache.put("b", CacheEntry(_raster()))
        self.cache.put("c", CacheEntry(_raster()))

        self.assertNotIn("a", self.cache)
        self.assertTrue(preview.is_released)
        self.assertTrue(full.is_released)
        self.assertEqual(self.cache.size_kb, 8)

    def test_oversized_entry_is_not_kept(self):
        big = _raster(64, 64)
        self.cache.put("big", CacheEntry(big))
        self.assertNotIn("big", self.cache)
        self.assertEqual(self.cache.size_kb, 0)
        self.assertEqual(big.ref_count, 1)

    def test_last_writer_wins(self):
        first, second = _raster(), _raster(16, 16)
        self.cache.put("a", CacheEntry(first))
        self.cache.put("a", CacheEntry(second))

        self.assertIs(self.cache.get("a").preview, second)
        self.assertEqual(self.cache.size_kb, 1)
        self.assertEqual(first.ref_count, 1)
        self.assertEqual(len(self.cache), 1)

    def test_stale_entry_is_evicted_on_get(self):
        preview = _raster()
        self.cache.put("a", CacheEntry(preview))
        preview.recycle()

        self.assertEqual(self.cache.size_kb, 4)
        self.assertIsNone(self.cache.get("a"))
        self.assertNotIn("a", self.cache)
        self.assertEqual(self.cache.size_kb, 0)

    def test_evict_all_releases_everything(self):
        rasters = [_raster(16, 16) for _ in range(3)]
        for i, r in enumerate(rasters):
            self.cache.put(str(i), CacheEntry(r))
            r.release()

        self.cache.evict_all()
        self.assertEqual(len(self.cache), 0)
        self.assertEqual(self.cache.size_kb, 0)
        self.assertTrue(all(r.is_released for r in rasters))

    def test_released_entry_is_refused(self):
        preview = _raster()
        preview.release()
        self.cache.put("a", CacheEntry(preview))
        self.assertNotIn("a", self.cache)


def test_budget_must_be_positive():
    with pytest.raises(ValueError):
        ImageCache(budget_kb=0)
