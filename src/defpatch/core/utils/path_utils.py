# src/defpatch/core/utils/path_utils.py
import logging
from pathlib import Path

logger = logging.getLogger(__name__)


class PathUtils:
    """
    A central utility for reliably retrieving important package and user paths.
    """

    # --- Package specific paths

    @staticmethod
    def get_package_root() -> Path:
        """
        Returns the absolute path of the installed 'defpatch' package.
        (e.g., /path/to/site-packages/defpatch)
        """
        return Path(__file__).resolve().parents[2]

    @staticmethod
    def get_settings_file() -> Path:
        """Returns the path to the bundled settings.json."""
        return PathUtils.get_package_root() / "settings.json"

    # --- Helper methods ---

    @staticmethod
    def ensure_parent_dir(path: Path) -> Path:
        """
        Creates the parent directory of an output file if it does not exist yet.
        """
        path = Path(path)
        if not path.parent.exists():
            logger.debug("Creating output directory %s", path.parent)
            path.parent.mkdir(parents=True, exist_ok=True)
        return path
