"""silencethelan - allow or block people's internet activities on the home network."""

__version__ = "0.1.0"
