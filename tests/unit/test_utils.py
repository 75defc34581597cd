"""
Tests for the vector helpers in core.utils.
"""

import numpy as np
import pytest

from core.utils import l2_normalize, to_vector, vector_to_list


class TestL2Normalize:

    def test_unit_length(self):
        out = l2_normalize(np.array([3.0, 4.0]))
        assert np.linalg.norm(out) == pytest.approx(1.0)
        assert out.tolist() == pytest.approx([0.6, 0.8])

    def test_zero_vector_unchanged(self):
        zero = np.zeros(4)
        out = l2_normalize(zero)
        assert out.tolist() == [0.0, 0.0, 0.0, 0.0]


class TestToVector:

    def test_none(self):
        assert to_vector(None) is None
        assert to_vector(None, dim=4) is None

    def test_same_width(self):
        out = to_vector([1, 2, 3], dim=3)
        assert out.dtype == np.float64
        assert out.tolist() == [1.0, 2.0, 3.0]

    def test_pads_short_input(self):
        assert to_vector([1.0], dim=3).tolist() == [1.0, 0.0, 0.0]

    def test_truncates_long_input(self):
        assert to_vector([1.0, 2.0, 3.0, 4.0], dim=2).tolist() == [1.0, 2.0]


class TestVectorToList:

    def test_round_values_are_python_floats(self):
        out = vector_to_list(np.array([0.5, 1.0], dtype=np.float32))
        assert out == [0.5, 1.0]
        assert all(type(v) is float for v in out)

    def test_none(self):
        assert vector_to_list(None) is None
