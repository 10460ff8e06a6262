"""
Result objects for receiver operations.

Radio operations return plain booleans; the CLI wraps each call in an
OperationResult so it can print a consistent summary of what happened.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .errors import ErrorKind, RadioError


@dataclass
class OperationResult:
    """
    Outcome of one receiver operation.

    Attributes:
        ok: Whether the operation completed successfully
        operation: Name of the operation (e.g., "set_power", "update_mute")
        device: Serial path or simulator name the operation ran against
        error_kind: Category of the failure, if any
        errors: Human-readable failure messages
        warnings: Non-blocking issues encountered
        metadata: Operation-specific values (confirmed state, readings)
    """
    ok: bool
    operation: str
    device: str = ""
    error_kind: Optional[ErrorKind] = None
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def add_warning(self, message: str) -> None:
        """Add a warning message."""
        self.warnings.append(message)

    def add_error(self, message: str, kind: Optional[ErrorKind] = None) -> None:
        """Add an error message and mark result as failed."""
        self.errors.append(message)
        self.ok = False
        if kind is not None:
            self.error_kind = kind

    def to_summary(self) -> str:
        """Human-readable summary for CLI output."""
        status = "SUCCESS" if self.ok else "FAILED"
        lines = [f"[{status}] {self.operation}"]

        if self.device:
            lines.append(f"  Device: {self.device}")
        for name, value in self.metadata.items():
            lines.append(f"  {name}: {value}")

        if self.warnings:
            lines.append("  Warnings:")
            for warn in self.warnings:
                lines.append(f"    - {warn}")

        if self.errors:
            kind = f" ({self.error_kind.value})" if self.error_kind else ""
            lines.append(f"  Errors{kind}:")
            for err in self.errors:
                lines.append(f"    - {err}")

        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "ok": self.ok,
            "operation": self.operation,
            "device": self.device,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "errors": self.errors,
            "warnings": self.warnings,
            "metadata": self.metadata,
        }

    @classmethod
    def from_outcome(
        cls,
        operation: str,
        ok: bool,
        error: Optional[RadioError] = None,
        device: str = "",
        **metadata: Any,
    ) -> "OperationResult":
        """Build a result from a boolean outcome and the radio's last error."""
        result = cls(ok=ok, operation=operation, device=device, metadata=dict(metadata))
        if not ok:
            if error is not None:
                result.add_error(str(error) or error.__class__.__name__, error.kind)
            else:
                result.add_error("operation failed")
        return result
