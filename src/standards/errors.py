"""Exception hierarchy for the standards knowledge base.

Every error message includes: what happened, why, and what to do next.
This allows LLM clients to understand failures and take corrective action.
"""

from __future__ import annotations


class StandardsError(Exception):
    """Base class for all standards errors."""


class StandardNotFound(StandardsError):
    """No standard exists at the requested path."""

    def __init__(self, path: str):
        super().__init__(
            f"No standard found at path '{path}'. "
            f"Use standards_get_metadata to list available paths, "
            f"or standards_search to find a standard by keyword."
        )
        self.path = path


class AmbiguousPath(StandardsError):
    """A shortened path matched more than one standard."""

    def __init__(self, path: str, candidates: list[str]):
        shown = ", ".join(f"'{c}'" for c in candidates[:10])
        more = f" (and {len(candidates) - 10} more)" if len(candidates) > 10 else ""
        super().__init__(
            f"Path '{path}' matches {len(candidates)} standards: {shown}{more}. "
            f"Pass the full file name of the one you mean."
        )
        self.path = path
        self.candidates = candidates


class InvalidMetadata(StandardsError):
    """Metadata violates the schema, an enum, or a format constraint."""

    def __init__(self, field: str, value: object, reason: str):
        super().__init__(
            f"Invalid value for '{field}' ({value!r}): {reason}. "
            f"Fix the '{field}' field and retry. Nothing was written."
        )
        self.field = field
        self.value = value
        self.reason = reason


class StandardExists(StandardsError):
    """Create would overwrite an existing standard."""

    def __init__(self, path: str):
        super().__init__(
            f"A standard already exists at '{path}'. "
            f"Use standards_update path='{path}' to change it, "
            f"or pass a different filename to create a separate standard."
        )
        self.path = path


class RenameConflict(StandardsError):
    """Update would rename a standard onto a file that already exists."""

    def __init__(self, old_path: str, new_path: str):
        super().__init__(
            f"Cannot rename '{old_path}' to '{new_path}': the target already exists. "
            f"The original file was not modified. "
            f"Update or remove '{new_path}' first, or choose metadata that yields a different name."
        )
        self.old_path = old_path
        self.new_path = new_path


class MalformedDocument(StandardsError):
    """A file's frontmatter block is missing or not a key/value mapping."""

    def __init__(self, path: str, detail: str):
        super().__init__(
            f"Standard '{path}' could not be parsed: {detail}. "
            f"The file must start with a '---' line, a YAML mapping, and a closing '---' line. "
            f"Fix the file by hand; it is skipped by the index until then."
        )
        self.path = path
        self.detail = detail


class StorageIOError(StandardsError):
    """A file-system call failed for a reason not classified above."""

    def __init__(self, path: str, detail: str):
        super().__init__(
            f"File operation on '{path}' failed: {detail}. "
            f"Check that the standards directory exists and is writable."
        )
        self.path = path
        self.detail = detail


class UnsafeInput(StandardsError):
    """Input contains path traversal or escapes the standards directory."""

    def __init__(self, field: str, value: str, reason: str):
        super().__init__(
            f"Rejected unsafe {field}='{value}': {reason}. "
            f"Paths must be file names relative to the standards directory."
        )
        self.field = field
        self.value = value
        self.reason = reason


class ConfigError(StandardsError):
    """Store configuration is missing or invalid."""

    def __init__(self, detail: str, hint: str = ""):
        msg = f"Configuration error: {detail}."
        if hint:
            msg += f" {hint}"
        super().__init__(msg)
        self.detail = detail
        self.hint = hint
