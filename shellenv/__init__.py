"""
shellenv — host-environment facts for shell prompts.
"""

__app_name__ = "shellenv"
__version__ = "0.4.0"
