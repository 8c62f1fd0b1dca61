"""Location query classification, ranked geospatial search and admin hierarchy resolution."""

__version__ = "0.1.0"
