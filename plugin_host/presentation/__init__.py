"""
Presentation layer: the REST API over the plugin manager.
"""
