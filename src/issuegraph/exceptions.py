"""issuegraph exception hierarchy.

Only ``IssueNotFoundError`` ever reaches a caller of the hierarchy
operations; the other tracker failures are absorbed by the build and
reflected in its output (placeholder nodes, an unavailable folder overlay).
The read-only structure views raise TopologyUnavailableError and
FolderNotFoundError as well.
"""

from __future__ import annotations


class IssueGraphError(Exception):
    """Base exception for all issuegraph errors."""


class ConfigError(IssueGraphError):
    """Raised when the configuration is invalid or cannot be read."""


class TrackerError(IssueGraphError):
    """Raised when a request to the issue tracker fails.

    Attributes:
        status_code: HTTP status of the failed response, 0 for network errors.
        detail: Error text extracted from the response body.
    """

    def __init__(self, message: str, status_code: int = 0, detail: str = "") -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail

    def __str__(self) -> str:
        base = super().__str__()
        if self.detail:
            return f"{base}: {self.detail}"
        return base


class IssueNotFoundError(TrackerError):
    """Raised when an issue key cannot be resolved to a record."""

    def __init__(self, key: str, detail: str = "") -> None:
        super().__init__(f"Issue {key} not found or not accessible", 404, detail)
        self.key = key


class TopologyUnavailableError(IssueGraphError):
    """Raised when the folder topology cannot be read.

    Covers a missing structure, permission errors and transport failures.
    The hierarchy build treats it as "no folders", never as a failure.
    """

    def __init__(self, message: str, not_found: bool = False) -> None:
        super().__init__(message)
        self.not_found = not_found


class FolderNotFoundError(IssueGraphError):
    """Raised when an element id does not name a folder of the topology.

    Attributes:
        folder_id: The requested element id.
        topology_id: The topology that was searched.
        not_a_folder: True when the element exists but is not a folder.
    """

    def __init__(self, folder_id: str, topology_id: str, not_a_folder: bool = False) -> None:
        if not_a_folder:
            message = f"Element {folder_id} of structure {topology_id} is not a folder"
        else:
            message = f"Folder {folder_id} not found in structure {topology_id}"
        super().__init__(message)
        self.folder_id = folder_id
        self.topology_id = topology_id
        self.not_a_folder = not_a_folder
