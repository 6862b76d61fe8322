"""MediaForge: provider task orchestration and story video assembly."""

__version__ = "0.3.0"
