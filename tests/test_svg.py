"""Tests for the canvas composer."""

import asyncio
import math
import xml.etree.ElementTree as ET

import numpy as np
import pytest

from qrsvg import svg as svg_module
from qrsvg.errors import ConfigurationError, RenderInProgressError, ResourceError
from qrsvg.matrix import BoolMatrix
from qrsvg.options import RenderOptions
from qrsvg.svg import QRSVG, compute_layout
from tests.conftest import XLINK_NS, find_by_id, group, render_svg, tag

SOLID_CORNERS = {
    "width": 210,
    "height": 210,
    "corners_square_options": {"color": "#f00"},
    "corners_dot_options": {"color": "#0f0"},
}


def rect_cells(element, dot_size=10, x0=0, y0=0):
    """(row, col) of every rect child, in module units."""
    return {
        ((float(r.get("y")) - y0) // dot_size, (float(r.get("x")) - x0) // dot_size)
        for r in element.iter(tag("rect"))
    }


class TestLayout:
    @pytest.mark.parametrize("width, height, margin, count", [
        (300, 300, 0, 21),
        (300, 200, 10, 25),
        (1000, 333, 7, 57),
        (177, 177, 0, 177),
        (250, 400, 3, 33),
    ])
    def test_grid_fits_and_is_centred(self, width, height, margin, count):
        layout = compute_layout(RenderOptions(width=width, height=height, margin=margin), count)
        assert layout.dot_size >= 1
        assert layout.dot_size * count <= min(width, height) - 2 * margin
        assert layout.dot_size == math.floor((min(width, height) - 2 * margin) / count)
        assert layout.x == math.floor((width - layout.size) / 2)
        assert layout.y == math.floor((height - layout.size) / 2)

    def test_too_small(self):
        with pytest.raises(ConfigurationError):
            compute_layout(RenderOptions(width=20, height=20), 21)

    def test_margin_eats_canvas(self):
        with pytest.raises(ConfigurationError):
            compute_layout(RenderOptions(width=100, height=100, margin=45), 21)

    def test_negative_margin(self):
        with pytest.raises(ConfigurationError):
            compute_layout(RenderOptions(width=210, height=210, margin=-5), 21)

    def test_empty_matrix(self):
        with pytest.raises(ConfigurationError):
            compute_layout(RenderOptions(), 0)


class TestScene:
    def test_root_attributes(self, dark21):
        composer, root = render_svg({"width": 210, "height": 150}, dark21)
        assert root.get("data-internal-uid") == "svg_qr_test"
        assert root.get("width") == "210"
        assert root.get("height") == "150"
        assert composer.id == "svg_qr_test"

    def test_generated_ids_are_unique(self):
        assert QRSVG().id != QRSVG().id

    def test_solid_background(self, dark21):
        _, root = render_svg({"width": 210, "height": 210, "background_options": {"color": "#abc"}}, dark21)
        background = [r for r in root if r.tag == tag("rect") and r.get("class") == "background-color"]
        assert len(background) == 1
        style = root.find(f"{tag('defs')}/{tag('style')}").text
        assert '[data-internal-uid="svg_qr_test"] .background-color{ fill: #abc; }' in style
        assert '[data-internal-uid="svg_qr_test"] .dot-color{ fill: #000; }' in style

    def test_no_background(self, dark21):
        _, root = render_svg({"width": 210, "height": 210, "background_options": {"color": None}}, dark21)
        assert not [r for r in root if r.tag == tag("rect")]

    def test_modules_every_dark_cell_outside_finders(self, dark21):
        _, root = render_svg(SOLID_CORNERS, dark21)
        dots = group(root, "dot-color")
        assert len(dots) == 441 - 3 * 49
        for rect in dots:
            assert rect.get("width") == "10"
            assert rect.get("height") == "10"
        for row, col in rect_cells(dots):
            assert not (row < 7 and col < 7)
            assert not (row < 7 and col >= 14)
            assert not (row >= 14 and col < 7)

    def test_light_modules_not_drawn(self, finders21):
        _, root = render_svg(SOLID_CORNERS, finders21)
        assert len(group(root, "dot-color")) == 0

    def test_corner_regions(self, dark21):
        _, root = render_svg(SOLID_CORNERS, dark21)
        for col, row in ((0, 0), (1, 0), (0, 1)):
            square = group(root, f"corners-square-color-{col}-{row}")
            dot = group(root, f"corners-dot-color-{col}-{row}")
            assert len(square) == 24
            assert len(dot) == 9
            cells = rect_cells(square, x0=col * 140, y0=row * 140)
            assert cells == {(r, c) for r in range(7) for c in range(7) if r in (0, 6) or c in (0, 6)}
            assert rect_cells(dot, x0=col * 140, y0=row * 140) == {(r, c) for r in range(2, 5) for c in range(2, 5)}

    def test_uncoloured_corners_join_the_dots(self, dark21):
        _, root = render_svg({"width": 210, "height": 210}, dark21)
        assert len(group(root, "dot-color")) == 294 + 3 * (24 + 9)
        assert group(root, "corners-square-color-0-0") is None

    def test_corner_shapes(self, dark21):
        _, root = render_svg({
            "width": 210, "height": 210,
            "corners_square_options": {"type": "square", "color": "#f00"},
            "corners_dot_options": {"type": "dot", "color": "#0f0"},
        }, dark21)
        top_right = group(root, "corners-square-color-1-0")
        (path,) = list(top_right)
        assert path.tag == tag("path")
        assert path.get("clip-rule") == "evenodd"
        assert path.get("transform") == "rotate(90,175,35)"
        (circle,) = list(group(root, "corners-dot-color-0-1"))
        assert (circle.get("cx"), circle.get("cy"), circle.get("r")) == ("35", "175", "15")
        assert circle.get("transform") == "rotate(-90,35,175)"

    def test_margin_and_centering(self, dark21):
        _, root = render_svg({"width": 300, "height": 260, "margin": 10}, dark21)
        # dot size floor(240 / 21) = 11, grid 231px
        xs = [float(r.get("x")) for r in group(root, "dot-color")]
        ys = [float(r.get("y")) for r in group(root, "dot-color")]
        assert min(xs) == 34
        assert min(ys) == 14
        assert max(xs) == 34 + 20 * 11

    def test_canvas_too_small(self, dark21):
        composer = QRSVG({"width": 20, "height": 20})
        with pytest.raises(ConfigurationError):
            asyncio.run(composer.render(dark21))
        assert composer.drawing is None


class TestGradients:
    def test_dots_gradient(self, dark21):
        _, root = render_svg({
            "width": 210, "height": 210,
            "dots_options": {"gradient": {"color_stops": [
                {"offset": 0, "color": "#f00"}, {"offset": 1, "color": "#00f"},
            ]}},
        }, dark21)
        gradient = find_by_id(root, "dot-color")
        assert gradient.tag == tag("linearGradient")
        assert (gradient.get("x1"), gradient.get("y1"), gradient.get("x2"), gradient.get("y2")) == (
            "0", "105", "210", "105")
        assert gradient.get("gradientUnits") == "userSpaceOnUse"
        stops = gradient.findall(tag("stop"))
        assert [(s.get("offset"), s.get("stop-color")) for s in stops] == [("0%", "#f00"), ("100%", "#00f")]

        clip = find_by_id(root, "clip-path-dot-color")
        assert clip.tag == tag("clipPath")
        assert len(clip) == 294 + 3 * (24 + 9)
        filled = [r for r in root if r.get("fill") == "url('#dot-color')"]
        assert len(filled) == 1
        assert filled[0].get("clip-path") == "url('#clip-path-dot-color')"

    def test_radial_background(self, dark21):
        _, root = render_svg({
            "width": 210, "height": 100,
            "background_options": {"gradient": {"type": "radial", "color_stops": [
                {"offset": 0, "color": "#fff"}, {"offset": 1, "color": "#ccc"},
            ]}},
        }, dark21)
        gradient = find_by_id(root, "background-color")
        assert gradient.tag == tag("radialGradient")
        assert (gradient.get("cx"), gradient.get("cy"), gradient.get("r")) == ("105", "50", "105")
        (background,) = [r for r in root if r.get("fill") == "url('#background-color')"]
        assert background.get("clip-path") is None

    def test_corner_gradients_turn_with_the_corner(self, dark21):
        _, root = render_svg({
            "width": 210, "height": 210,
            "corners_square_options": {"gradient": {"color_stops": [
                {"offset": 0, "color": "#000"}, {"offset": 1, "color": "#f00"},
            ]}},
        }, dark21)
        top_left = find_by_id(root, "corners-square-color-0-0")
        top_right = find_by_id(root, "corners-square-color-1-0")
        assert (top_left.get("x1"), top_left.get("y1"), top_left.get("x2"), top_left.get("y2")) == (
            "0", "35", "70", "35")
        assert (top_right.get("x1"), top_right.get("y1"), top_right.get("x2"), top_right.get("y2")) == (
            "175", "0", "175", "70")
        assert len(find_by_id(root, "clip-path-corners-square-color-0-0")) == 24


class TestNeighbourFusion:
    def test_pair_fuses_across_the_shared_edge(self):
        grid = np.zeros((21, 21), dtype=bool)
        grid[10, 10] = grid[10, 11] = True
        _, root = render_svg({**SOLID_CORNERS, "dots_options": {"type": "rounded"}}, BoolMatrix(grid))
        left, right = list(group(root, "dot-color"))
        assert left.get("transform") == "rotate(180,105,105)"
        assert right.get("transform") is None

    def test_finders_do_not_fuse_with_modules(self):
        grid = np.zeros((21, 21), dtype=bool)
        grid[7, 3] = True
        _, root = render_svg({**SOLID_CORNERS, "dots_options": {"type": "rounded"}}, BoolMatrix(grid))
        (dot,) = list(group(root, "dot-color"))
        assert dot.tag == tag("circle")

    def test_hidden_modules_do_not_fuse(self, logo_png):
        grid = np.zeros((21, 21), dtype=bool)
        grid[7, 10] = grid[8, 10] = True
        _, root = render_svg({
            **SOLID_CORNERS, "image": logo_png,
            "dots_options": {"type": "rounded"},
            "qr_options": {"error_correction_level": "H"},
            "image_options": {"image_size": 0.3},
        }, BoolMatrix(grid))
        (dot,) = list(group(root, "dot-color"))
        assert dot.tag == tag("circle")


class TestLegacyRotation:
    def test_transposes_the_matrix(self):
        grid = np.zeros((21, 21), dtype=bool)
        grid[10, 12] = True
        matrix = BoolMatrix(grid)
        _, root = render_svg(SOLID_CORNERS, matrix)
        (dot,) = list(group(root, "dot-color"))
        assert (dot.get("x"), dot.get("y")) == ("120", "100")

        _, root = render_svg({**SOLID_CORNERS, "use_legacy_dot_rotation": True}, matrix)
        (dot,) = list(group(root, "dot-color"))
        assert (dot.get("x"), dot.get("y")) == ("100", "120")


class TestLogo:
    OPTIONS = {
        "width": 210, "height": 210,
        "qr_options": {"error_correction_level": "H"},
        "image_options": {"image_size": 0.3},
    }

    def test_logo_centred_over_hidden_block(self, dark21, logo_png):
        _, root = render_svg({**self.OPTIONS, "image": logo_png}, dark21)
        dots = group(root, "dot-color")
        assert len(dots) == 294 + 3 * (24 + 9) - 25
        hidden = {(r, c) for r in range(8, 13) for c in range(8, 13)}
        assert not rect_cells(dots) & hidden

        (image,) = root.iter(tag("image"))
        assert (image.get("x"), image.get("y")) == ("80", "80")
        assert (image.get("width"), image.get("height")) == ("50px", "50px")
        href = image.get(f"{{{XLINK_NS}}}href")
        assert href.startswith("data:image/png;base64,")
        assert image.get("href") == href

    def test_show_background_dots(self, dark21, logo_png):
        _, root = render_svg({
            **self.OPTIONS, "image": logo_png,
            "image_options": {"image_size": 0.3, "hide_background_dots": False},
        }, dark21)
        assert len(group(root, "dot-color")) == 294 + 3 * (24 + 9)
        assert len(list(root.iter(tag("image")))) == 1

    def test_wide_logo(self, dark21, wide_logo_png):
        _, root = render_svg({**self.OPTIONS, "image": wide_logo_png}, dark21)
        (image,) = root.iter(tag("image"))
        assert (image.get("width"), image.get("height")) == ("70px", "35px")
        assert (image.get("x"), image.get("y")) == ("70", "87.5")
        assert len(group(root, "dot-color")) == 393 - 35

    def test_image_margin(self, dark21, logo_png):
        _, root = render_svg({
            **self.OPTIONS, "image": logo_png,
            "image_options": {"image_size": 0.3, "margin": 5},
        }, dark21)
        (image,) = root.iter(tag("image"))
        assert (image.get("x"), image.get("width")) == ("85", "40px")

    def test_unreadable_logo_degrades(self, dark21, tmp_path):
        _, root = render_svg({**self.OPTIONS, "image": str(tmp_path / "missing.png")}, dark21)
        assert not list(root.iter(tag("image")))
        assert len(group(root, "dot-color")) == 393

    def test_logo_loaded_once(self, dark21, logo_png, monkeypatch):
        calls = []
        real = svg_module.load_image

        async def counting(src, cross_origin=None):
            calls.append(src)
            return await real(src, cross_origin=cross_origin)

        monkeypatch.setattr(svg_module, "load_image", counting)
        composer = QRSVG({**self.OPTIONS, "image": logo_png})
        asyncio.run(composer.render(dark21))
        asyncio.run(composer.update({"dots_options": {"color": "#333"}}))
        assert calls == [logo_png]


class TestDeterminism:
    OPTIONS = {
        "width": 240, "height": 240, "margin": 6,
        "dots_options": {"type": "classy-rounded", "gradient": {"rotation": 0.7, "color_stops": [
            {"offset": 0, "color": "#123"}, {"offset": 1, "color": "#456"},
        ]}},
        "corners_square_options": {"type": "extra-rounded", "color": "#789"},
    }

    def test_rerender_is_identical(self, random21):
        composer, _ = render_svg(self.OPTIONS, random21)
        first = composer.to_string()
        asyncio.run(composer.render(random21))
        assert composer.to_string() == first

    def test_same_uid_is_identical(self, random21):
        a, _ = render_svg(self.OPTIONS, random21, uid="svg_qr_7")
        b, _ = render_svg(self.OPTIONS, random21, uid="svg_qr_7")
        assert a.to_string() == b.to_string()

    def test_render_replaces_the_scene(self, dark21):
        composer, _ = render_svg({"width": 210, "height": 210}, dark21)
        before = composer.drawing
        asyncio.run(composer.update({"dots_options": {"color": "#f00"}}))
        assert composer.drawing is not before
        assert "#f00" in composer.to_string()
        assert composer.to_string().count("dot-color{") == 1


class TestConcurrency:
    def test_overlapping_render_rejected(self, dark21, monkeypatch):
        async def scenario():
            gate = asyncio.Event()

            async def slow_load(src, cross_origin=None):
                await gate.wait()
                raise ResourceError("unreachable")

            monkeypatch.setattr(svg_module, "load_image", slow_load)
            composer = QRSVG({"width": 210, "height": 210, "image": "logo.png"})
            first = asyncio.create_task(composer.render(dark21))
            await asyncio.sleep(0)
            with pytest.raises(RenderInProgressError):
                await composer.render(dark21)
            gate.set()
            await first
            return composer

        composer = asyncio.run(scenario())
        assert composer.drawing is not None

    def test_update_during_render_leaves_options_alone(self, dark21, monkeypatch):
        async def scenario():
            gate = asyncio.Event()

            async def slow_load(src, cross_origin=None):
                await gate.wait()
                raise ResourceError("unreachable")

            monkeypatch.setattr(svg_module, "load_image", slow_load)
            composer = QRSVG({"width": 210, "height": 210, "image": "logo.png"}, uid="svg_qr_busy")
            first = asyncio.create_task(composer.render(dark21))
            await asyncio.sleep(0)
            with pytest.raises(RenderInProgressError):
                await composer.update({"width": 42, "height": 42}, qr=dark21)
            composer.options = composer.options.merge({"dots_options": {"color": "#f00"}})
            gate.set()
            await first
            return composer

        composer = asyncio.run(scenario())
        assert composer.options.width == 210
        root = ET.fromstring(composer.to_string())
        assert root.get("width") == "210"
        assert max(float(r.get("x")) for r in group(root, "dot-color")) == 200
        # the pending render keeps the options it started with
        assert "#f00" not in composer.to_string()

    def test_update_without_matrix(self):
        with pytest.raises(ConfigurationError):
            asyncio.run(QRSVG().update({"width": 100}))

    def test_to_string_before_render(self):
        with pytest.raises(ConfigurationError):
            QRSVG().to_string()
