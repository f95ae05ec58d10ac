# src/a11ygraph/utils/path_utils.py
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    Locates files shipped inside the installed package.
    """

    @staticmethod
    def get_package_root() -> Path:
        """Returns the directory of the 'a11ygraph' package (where settings.json lives)."""
        return Path(__file__).resolve().parents[1]

    @staticmethod
    def get_settings_file() -> Path:
        return PathUtils.get_package_root() / "settings.json"
