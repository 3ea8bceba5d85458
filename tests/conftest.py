"""
Shared dissection fixtures.
"""
import sys
from pathlib import Path

import pytest

# Make the root modules importable when running pytest from any CWD.
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from tangram import Dissection, Tangram


@pytest.fixture
def two_squares():
    """A 2x1 strip cut into two unit squares, left one first."""
    return Dissection(
        1,
        [(0, 0), (0, 1), (1, 1), (1, 0), (2, 1), (2, 0)],
        [[0, 1, 2, 3], [3, 2, 4, 5]],
    )


@pytest.fixture
def three_squares():
    """A 3x1 strip cut into three unit squares."""
    return Dissection(
        2,
        [(0, 0), (0, 1), (1, 1), (1, 0), (2, 1), (2, 0), (3, 1), (3, 0)],
        [[0, 1, 2, 3], [3, 2, 4, 5], [5, 4, 6, 7]],
    )


@pytest.fixture
def classic():
    """The seven-piece tangram cut from the unit square.

    Large triangles (top, left), medium triangle, square, two small
    triangles and the parallelogram, all listed clockwise.
    """
    vertices = [
        (0, 0), (1, 0), (1, 1), (0, 1),         # A B C D
        (0.5, 0.5), (0.5, 0), (1, 0.5),         # O E F
        (0.75, 0.75), (0.25, 0.25), (0.75, 0.25),  # G H I
    ]
    polygons = [
        [3, 2, 4],
        [0, 3, 4],
        [5, 6, 1],
        [4, 9, 5, 8],
        [0, 8, 5],
        [4, 7, 9],
        [9, 7, 2, 6],
    ]
    return Dissection(0, vertices, polygons)


@pytest.fixture
def strip(two_squares):
    return Tangram(two_squares)


@pytest.fixture
def assembled(classic):
    return Tangram(classic)
