"""
Laplacian / Tenengrad Blur Filter for Filename Pipelines

Classifies images as blurry or sharp and filters NUL-delimited streams of
image paths (as produced by `find -print0`) down to the ones that match.
"""

__version__ = "1.0.0"
__author__ = "blursieve contributors"
