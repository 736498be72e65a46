"""
HTML views.
"""

from .templates import directory_template, error_template

__all__ = ["directory_template", "error_template"]
