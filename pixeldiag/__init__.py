"""pixeldiag — issue detection and correlation for captured ad-tech beacon traffic."""

__version__ = "0.1.0"
