"""Device-rotation screenshot runner built on Playwright."""

__version__ = "0.1.0"
