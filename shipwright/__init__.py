"""
Shipwright - 桌面应用打包编排器

Packaging orchestrator for Electron-style desktop applications.
"""

__version__ = "0.1.0"
__author__ = "Project Team"
__license__ = "MIT"

from .config.schema import Configuration
from .build.builder import Builder
from .build.core import Arch, Platform

__all__ = ["Configuration", "Builder", "Arch", "Platform", "__version__"]
