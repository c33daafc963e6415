"""Sources of the local paths to upload."""

from __future__ import annotations

import logging
import subprocess
import sys
from collections.abc import Iterable
from typing import Protocol

logger = logging.getLogger(__name__)

FINDER_SELECTION_SCRIPT = """
tell application "Finder"
  set selectedItems to selection
  if selectedItems is {} then
    return ""
  end if
  set itemPaths to {}
  repeat with anItem in selectedItems
    set end of itemPaths to POSIX path of (anItem as alias)
  end repeat
  set AppleScript's text item delimiters to linefeed
  return itemPaths as text
end tell
"""


class SelectionProvider(Protocol):
    def get_selected_paths(self) -> list[str]: ...


class StaticSelection:
    """A fixed list of paths, e.g. from the command line."""

    def __init__(self, paths: Iterable[str]) -> None:
        self._paths = [str(path) for path in paths]

    def get_selected_paths(self) -> list[str]:
        return list(self._paths)


class FinderSelection:
    """The items currently selected in the macOS Finder."""

    def __init__(self, timeout: float = 10.0) -> None:
        self._timeout = timeout

    def get_selected_paths(self) -> list[str]:
        if sys.platform != "darwin":
            logger.warning("Finder selection is only available on macOS")
            return []
        try:
            result = subprocess.run(
                ["osascript", "-e", FINDER_SELECTION_SCRIPT],
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=True,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning(f"Could not read the Finder selection: {e}")
            return []
        return [line for line in result.stdout.strip().splitlines() if line]
