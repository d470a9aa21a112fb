"""
Version information for the mg-transfer package.
"""

# Version follows semantic versioning: MAJOR.MINOR.PATCH
__version__ = "0.3.0"
