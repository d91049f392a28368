"""
quarry: fetch, build and install packages from version control and URLs
"""

__version__ = '0.1'
