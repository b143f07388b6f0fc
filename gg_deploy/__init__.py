"""
gg-deploy: point a domain at GitHub Pages and keep the site's files in sync
"""

__version__ = "0.1.0"
