import io
from pathlib import Path, PurePath

import pytest
from PIL import Image, ImageCms

from smelt.images import PillowOptimizeTransform
from smelt.simple import Asset


def make_asset(contents: bytes, name: str):
    return Asset(PurePath(name), contents, Path('src') / name)


def gradient(size: int = 256):
    img = Image.new('RGB', (size, size))
    img.putdata([(x % 256, y % 256, (x * y) % 256) for y in range(size) for x in range(size)])
    return img


def encode(img: Image.Image, fmt: str, **options):
    buffer = io.BytesIO()
    img.save(buffer, format=fmt, **options)
    return buffer.getvalue()


def test_png_is_shrunk_losslessly():
    original = gradient(64)
    contents = encode(original, 'PNG', compress_level=0)
    result = PillowOptimizeTransform()(make_asset(contents, 'logo.png'))

    assert len(result.contents) < len(contents)
    with Image.open(io.BytesIO(result.contents)) as optimized:
        assert optimized.format == 'PNG'
        assert list(optimized.getdata()) == list(original.getdata())


def test_jpeg_keeps_exif_and_color_profile():
    exif = Image.Exif()
    exif[0x0112] = 6  # orientation: rotate 90 CW
    icc = ImageCms.ImageCmsProfile(ImageCms.createProfile('sRGB')).tobytes()
    contents = encode(gradient(), 'JPEG', quality=95, exif=exif.tobytes(), icc_profile=icc)

    result = PillowOptimizeTransform()(make_asset(contents, 'photo.jpg'))

    assert len(result.contents) < len(contents)
    with Image.open(io.BytesIO(result.contents)) as optimized:
        assert optimized.format == 'JPEG'
        assert optimized.getexif()[0x0112] == 6
        assert optimized.info['icc_profile'] == icc


@pytest.mark.parametrize('fmt,name', [('GIF', 'spinner.gif'), ('PNG', 'spinner.png')])
def test_animation_is_left_untouched(fmt: str, name: str):
    frames = [Image.new('RGB', (32, 32), color) for color in ('red', 'green', 'blue', 'white')]
    contents = encode(frames[0], fmt, save_all=True, append_images=frames[1:], duration=100, loop=0)
    asset = make_asset(contents, name)

    result = PillowOptimizeTransform()(asset)

    assert result is asset
    with Image.open(io.BytesIO(result.contents)) as img:
        assert img.n_frames == 4


def test_unidentified_file_passes_through():
    asset = make_asset(b'<svg xmlns="http://www.w3.org/2000/svg"/>', 'logo.svg')
    assert PillowOptimizeTransform()(asset) is asset
