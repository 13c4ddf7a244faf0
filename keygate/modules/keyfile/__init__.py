"""
Key File Module - Black Box Interface

Purpose: Read and replace the protected key file
Interface: read(), write(), backup()
Hidden: Backup naming, directory creation, atomic replacement, filesystem errors
"""

from .keyfile import KeyFileError, KeyFileModule

__all__ = ["KeyFileModule", "KeyFileError"]
