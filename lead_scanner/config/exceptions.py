"""Custom exceptions for configuration management."""

from typing import List, Optional


class ConfigurationError(Exception):
    """
    Exception raised when configuration validation fails.

    Stores individual validation errors and remediation hints, and renders
    them as a numbered report.
    """

    def __init__(
        self,
        message: str,
        errors: Optional[List[str]] = None,
        suggestions: Optional[List[str]] = None,
    ):
        self.message = message
        self.errors = errors or []
        self.suggestions = suggestions or []
        super().__init__(self._format_message())

    def _format_message(self) -> str:
        """Format the error message with all errors and suggestions."""
        parts = [self.message]

        if self.errors:
            parts.append("\nValidation Errors:")
            parts.extend(f"  {i}. {error}" for i, error in enumerate(self.errors, 1))

        if self.suggestions:
            parts.append("\nSuggestions:")
            parts.extend(f"  - {suggestion}" for suggestion in self.suggestions)

        return "\n".join(parts)


class MissingCredentialError(ConfigurationError):
    """A source requires a credential that is not configured."""

    def __init__(self, source: str, variable: str):
        self.source = source
        self.variable = variable
        super().__init__(
            f"Source '{source}' requires the {variable} environment variable",
            errors=[f"Missing credential: {variable}"],
            suggestions=[
                f"Set {variable} in your environment or .env file",
                f"Or disable the '{source}' source in config.yaml",
            ],
        )
