"""fmshell - sandboxed file manager shell with a plugin system."""

__version__ = "0.1.0"
