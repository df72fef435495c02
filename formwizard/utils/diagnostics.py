"""Diagnostic utilities for configuration failures.

Broken expressions and unresolvable option dependencies never reach the
person filling in the form. They are logged and, when a collector is
attached to the engine, recorded here so the form author can review them.
"""

import os
from datetime import datetime
from typing import Dict, Any, List, Optional


class DiagnosticCollector:
    """Collects configuration failures seen while a form is in use."""

    def __init__(self):
        self.failures: List[Dict[str, Any]] = []
        self._index: Dict[tuple, Dict[str, Any]] = {}
        self.start_time = datetime.now()

    def record_failure(self, path: str, phase: str, error: str,
                       context: Optional[Dict[str, Any]] = None) -> None:
        """Record a configuration failure with context.

        Recompute runs on every edit, so a repeat of an already recorded
        failure only bumps its count and timestamp.

        Args:
            path: Field path the failure belongs to (e.g. 'cargo.volume')
            phase: Where it happened (computed, predicate, options, regex)
            error: Error message or description
            context: Additional context (expression source, rule type, etc)
        """
        key = (path, phase, error)
        existing = self._index.get(key)
        if existing is not None:
            existing['count'] += 1
            existing['timestamp'] = datetime.now().isoformat()
            return

        failure = {
            'path': path,
            'phase': phase,
            'error': error,
            'context': context or {},
            'count': 1,
            'timestamp': datetime.now().isoformat()
        }
        self._index[key] = failure
        self.failures.append(failure)

    def failures_for(self, path: str) -> List[Dict[str, Any]]:
        """Return the failures recorded for one field path."""
        return [f for f in self.failures if f['path'] == path]

    def clear(self) -> None:
        self.failures = []
        self._index = {}

    def get_summary(self) -> str:
        """Generate human-readable summary of failures."""
        if not self.failures:
            return "No configuration failures recorded"

        lines = [f"{len(self.failures)} configuration failures detected:"]
        lines.append("")

        for failure in self.failures:
            lines.append(f"- {failure['path']} failed during: {failure['phase']}")
            lines.append(f"  Error: {failure['error']}")

        return "\n".join(lines)

    def save_log(self, directory: str = ".") -> str:
        """Save detailed diagnostics to a timestamped log file.

        Returns:
            Path to the saved log file
        """
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        log_path = os.path.join(directory, f"form_diagnostics_{timestamp}.log")

        with open(log_path, 'w') as f:
            f.write("Form Configuration Diagnostics\n")
            f.write(f"Generated: {datetime.now()}\n")
            f.write("=" * 70 + "\n\n")

            for i, failure in enumerate(self.failures, 1):
                f.write(f"FAILURE {i}: {failure['path']}\n")
                f.write("-" * 40 + "\n")
                f.write(f"Phase: {failure['phase']}\n")
                f.write(f"Error: {failure['error']}\n")
                f.write(f"Occurrences: {failure['count']}\n")
                f.write(f"Timestamp: {failure['timestamp']}\n")

                if failure['context']:
                    f.write("\nContext:\n")
                    for key, value in failure['context'].items():
                        f.write(f"  {key}: {value}\n")

                f.write("\n")

        return log_path
