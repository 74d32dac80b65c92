"""
Ubuntu Optimize Toolkit

Routine maintenance for Ubuntu LTS systems:
- Package updates (APT, Snap, Flatpak, firmware)
- Cache, temp file and log cleanup
- Memory cache dropping and swap consolidation
- SSD TRIM scheduling
- GNOME Tracker disabling and preload installation
"""

__version__ = '1.0.0'

__all__ = ['__version__']
