"""
Lossless image and font optimization.
"""
from __future__ import annotations

import io

from .dependencies import PipDependency
from .simple import Asset, Transform


class PillowOptimizeTransform(Transform):
    """
    Re-encode PNG, JPEG, and GIF images with Pillow's optimizer, keeping the
    original format, JPEG quality, EXIF data, and ICC profile. Animated images
    and files Pillow cannot identify (SVG, web fonts, ...) pass through
    untouched, as does any image whose re-encoded form is not smaller.
    """
    save_options = {
        'PNG': {'optimize': True},
        'JPEG': {'optimize': True, 'quality': 'keep', 'progressive': True},
        'GIF': {'optimize': True},
    }
    # Pillow drops these unless they are passed back to save()
    preserved_info = ('exif', 'icc_profile')

    @classmethod
    def get_dependencies(cls):
        return {
            PipDependency('Pillow', check_name='PIL'),
        }

    def __call__(self, asset: Asset):
        from PIL import Image, UnidentifiedImageError

        try:
            img = Image.open(io.BytesIO(asset.contents))
        except UnidentifiedImageError:
            return asset

        with img:
            options = self.save_options.get(img.format or '')
            # Saving keeps only the current frame.
            if options is None or getattr(img, 'is_animated', False):
                return asset
            metadata = {key: img.info[key] for key in self.preserved_info if img.info.get(key)}
            buffer = io.BytesIO()
            img.save(buffer, format=img.format, **options, **metadata)

        optimized = buffer.getvalue()
        if len(optimized) >= len(asset.contents):
            return asset
        return asset.replace(contents=optimized)
