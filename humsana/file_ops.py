"""
File Operations
===============

Plain file read/write primitives used by the write interlock.
Every method reports failure in its result dict instead of raising.
"""

from pathlib import Path


class FileOps:
    """File read/write wrapper."""

    @staticmethod
    def read_if_exists(path: str) -> dict:
        """
        Read a text file if it exists.

        Args:
            path: File to read

        Returns:
            Dict with success status, exists flag, and content (None if absent)
        """
        try:
            p = Path(path)

            if not p.exists():
                return {"success": True, "exists": False, "content": None}

            if p.is_dir():
                return {"success": False, "error": f"Path is a directory: {path}"}

            return {"success": True, "exists": True, "content": p.read_text(encoding="utf-8")}

        except PermissionError as e:
            return {"success": False, "error": f"Permission denied: {e}"}
        except UnicodeDecodeError:
            return {"success": False, "error": f"Not a UTF-8 text file: {path}"}
        except OSError as e:
            return {"success": False, "error": str(e)}

    @staticmethod
    def write(path: str, content: str) -> dict:
        """
        Write text content, creating parent directories as needed.

        Args:
            path: Destination file
            content: Text to write

        Returns:
            Dict with success status and message or error
        """
        try:
            p = Path(path)
            p.parent.mkdir(parents=True, exist_ok=True)
            p.write_text(content, encoding="utf-8")
            return {"success": True, "message": f"Wrote {len(content)} characters to {path}"}

        except PermissionError as e:
            return {"success": False, "error": f"Permission denied: {e}"}
        except OSError as e:
            return {"success": False, "error": str(e)}

