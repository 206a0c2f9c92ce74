"""CityPoster - Generate minimalist map posters for any city.

This package fetches roads, water and parks from OpenStreetMap through the
Overpass API and turns them into themed SVG posters, optionally rasterized
to PNG.
"""

from importlib.metadata import PackageNotFoundError, version


try:
    __version__ = version("cityposter")
except PackageNotFoundError:
    __version__ = "0.1.0"

__all__ = ["__version__"]
