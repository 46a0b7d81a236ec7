"""sitepublish — build, derive, patch, mask and mirror a static site."""

__version__ = "0.1.0"
