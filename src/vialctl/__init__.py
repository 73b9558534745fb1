"""Set a solid RGB color on keyboards running Vial firmware with VialRGB."""

__version__ = "0.1.0"
