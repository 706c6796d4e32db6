"""
Portfolio API
Flat-file content backend for a personal portfolio site
"""

__version__ = '1.0.0'
