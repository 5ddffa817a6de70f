import io
import random

import pytest
from PIL import Image, ImageDraw


def gradient_image(width, height):
    ramp = Image.linear_gradient("L").resize((width, height))
    flipped = ramp.transpose(Image.Transpose.FLIP_TOP_BOTTOM)
    return Image.merge("RGB", (ramp, flipped, Image.new("L", (width, height), 128)))


def noise_image(width, height, seed=0):
    rng = random.Random(seed)
    return Image.frombytes("RGB", (width, height), rng.randbytes(width * height * 3))


def to_bytes(image, fmt="PNG"):
    buf = io.BytesIO()
    image.save(buf, format=fmt)
    return buf.getvalue()


@pytest.fixture
def gradient_png():
    def _make(width=600, height=400):
        return to_bytes(gradient_image(width, height))
    return _make


@pytest.fixture
def noise_png():
    def _make(width=400, height=400, seed=0):
        return to_bytes(noise_image(width, height, seed))
    return _make


@pytest.fixture
def large_photo_png():
    """A 4000x3000 image with a few flat shapes on a solid background."""
    img = Image.new("RGB", (4000, 3000), (70, 130, 180))
    draw = ImageDraw.Draw(img)
    draw.rectangle((400, 300, 1800, 1500), fill=(240, 200, 40))
    draw.ellipse((2200, 1200, 3600, 2700), fill=(200, 40, 60))
    return to_bytes(img)
