"""Shared test fixtures."""

from __future__ import annotations

import asyncio
import xml.etree.ElementTree as ET

import numpy as np
import pytest
from PIL import Image

from qrsvg.matrix import BoolMatrix
from qrsvg.svg import QRSVG

SVG_NS = "http://www.w3.org/2000/svg"
XLINK_NS = "http://www.w3.org/1999/xlink"


def tag(name: str) -> str:
    return f"{{{SVG_NS}}}{name}"


def finder_matrix(count: int = 21, fill: bool = False) -> np.ndarray:
    """Matrix with the three finder patterns; everything else ``fill``."""
    grid = np.full((count, count), fill, dtype=bool)
    finder = np.zeros((7, 7), dtype=bool)
    finder[0, :] = finder[6, :] = finder[:, 0] = finder[:, 6] = True
    finder[2:5, 2:5] = True
    for row, col in [(0, 0), (0, count - 7), (count - 7, 0)]:
        grid[row:row + 7, col:col + 7] = finder
    return grid


def render_svg(options, matrix, uid: str = "svg_qr_test") -> tuple[QRSVG, ET.Element]:
    composer = QRSVG(options, uid=uid)
    asyncio.run(composer.render(matrix))
    return composer, ET.fromstring(composer.to_string())


def group(root: ET.Element, class_name: str) -> ET.Element | None:
    for g in root.iter(tag("g")):
        if g.get("class") == class_name:
            return g
    return None


def find_by_id(root: ET.Element, element_id: str) -> ET.Element | None:
    for element in root.iter():
        if element.get("id") == element_id:
            return element
    return None


@pytest.fixture
def dark21() -> BoolMatrix:
    """21x21 symbol with every module dark."""
    return BoolMatrix(np.ones((21, 21), dtype=bool))


@pytest.fixture
def finders21() -> BoolMatrix:
    return BoolMatrix(finder_matrix(21))


@pytest.fixture
def logo_png(tmp_path):
    path = tmp_path / "logo.png"
    Image.new("RGBA", (100, 100), (200, 30, 30, 255)).save(path)
    return str(path)


@pytest.fixture
def wide_logo_png(tmp_path):
    path = tmp_path / "wide.png"
    Image.new("RGB", (200, 100), (30, 30, 200)).save(path)
    return str(path)


@pytest.fixture
def random21() -> BoolMatrix:
    """Finder patterns plus a fixed pseudo-random data region."""
    grid = finder_matrix(21)
    noise = np.random.default_rng(7).random((21, 21)) > 0.5
    data = np.ones((21, 21), dtype=bool)
    for row, col in [(0, 0), (0, 14), (14, 0)]:
        data[row:row + 7, col:col + 7] = False
    return BoolMatrix(np.where(data, noise, grid))
