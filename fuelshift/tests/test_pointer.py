"""
Tests for the cached shift pointer.
"""

from django.core.cache import cache

from fuelshift.pointer import ShiftPointerCache


class TestShiftPointerCache:
    """Tests for get/set/clear."""

    def test_empty(self, pointer):
        assert pointer.get() is None

    def test_set_then_get(self, pointer):
        pointer.set(42)
        assert pointer.get() == 42

    def test_last_write_wins(self, pointer):
        pointer.set(7)
        ShiftPointerCache().set(8)
        assert pointer.get() == 8

    def test_clear(self, pointer):
        pointer.set(42)
        pointer.clear()
        assert pointer.get() is None

    def test_clear_when_empty(self, pointer):
        pointer.clear()
        assert pointer.get() is None

    def test_stored_without_expiry_under_configured_key(self, pointer):
        pointer.set(5)
        assert cache.get('fuelshift:turno_ativo_id') == '5'

    def test_garbage_reads_as_absent(self, pointer):
        cache.set(pointer.key, 'not-a-number')
        assert pointer.get() is None

    def test_custom_key(self):
        first = ShiftPointerCache(key='console-a')
        second = ShiftPointerCache(key='console-b')
        first.set(1)
        assert second.get() is None

    def test_key_from_settings(self, settings):
        settings.FUELSHIFT = {"POINTER_KEY": "outra-chave"}
        ShiftPointerCache().set(3)
        assert cache.get('outra-chave') == '3'
