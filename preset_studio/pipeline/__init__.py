"""
Image Composition Pipeline

1. Source Acquisition - local path or remote URL
2. Background Removal - rembg (or an injected segmenter)
3. Preset Composition - one of nine fixed layouts
4. Output - collision-safe PNG artifact
"""
