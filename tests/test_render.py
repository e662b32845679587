from qr_presence.services.render import render_ascii, render_svg

TOKEN = "q83vEjRWeJq8zxIjRFVmd4iZqrvM3e7/ABEiM0RVZneImaq7zN0="


def test_render_svg_document() -> None:
    svg = render_svg(TOKEN)
    assert b"<svg" in svg
    assert b"path" in svg


def test_render_ascii_block() -> None:
    block = render_ascii(TOKEN)
    lines = block.strip("\n").splitlines()
    assert len(lines) > 10
    assert len({len(line) for line in lines}) == 1
