"""
Custom exceptions for BorrowIt.

Every repository operation either returns its value or raises one of these
to the awaiting caller. Driver errors are chained via ``raise ... from e``.
"""

from typing import Any, Dict, List, Optional


class BorrowItError(RuntimeError):
    """
    Base exception for BorrowIt errors.

    Attributes:
        message: Error message
        context: Optional dictionary with additional context (collection_name,
                 operation, etc.)
    """

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        """Return formatted error message with context if available."""
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (context: {context_str})"
        return self.message


class InitializationError(BorrowItError):
    """
    Raised when the MongoDB connection cannot be established.

    Attributes:
        message: Error message
        mongo_uri: MongoDB connection URI (if available)
        db_name: Database name (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        mongo_uri: Optional[str] = None,
        db_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if mongo_uri:
            context["mongo_uri"] = mongo_uri
        if db_name:
            context["db_name"] = db_name
        super().__init__(message, context=context)
        self.mongo_uri = mongo_uri
        self.db_name = db_name


class ConfigurationError(BorrowItError):
    """
    Raised when configuration is invalid or missing.

    Attributes:
        message: Error message
        config_key: Configuration key that caused the error (if available)
        config_value: Configuration value that caused the error (if available)
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if config_key:
            context["config_key"] = config_key
        if config_value is not None:
            context["config_value"] = config_value
        super().__init__(message, context=context)
        self.config_key = config_key
        self.config_value = config_value


class RepositoryError(BorrowItError):
    """
    Raised when a document-store operation fails.

    Covers connection errors, write conflicts and server-side validation
    failures surfaced by the driver.

    Attributes:
        message: Error message
        operation: Repository operation that failed (e.g. "add", "find")
        collection_name: Collection the operation targeted
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        operation: Optional[str] = None,
        collection_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if operation:
            context["operation"] = operation
        if collection_name:
            context["collection_name"] = collection_name
        super().__init__(message, context=context)
        self.operation = operation
        self.collection_name = collection_name


class DuplicateEntityError(RepositoryError):
    """
    Raised when an insert violates a unique index.

    Attributes:
        field: Name of the unique field (if known)
        value: Conflicting value (if known)
    """

    def __init__(
        self,
        message: str,
        field: Optional[str] = None,
        value: Optional[Any] = None,
        operation: Optional[str] = None,
        collection_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if field:
            context["field"] = field
        if value is not None:
            context["value"] = value
        super().__init__(
            message, operation=operation, collection_name=collection_name, context=context
        )
        self.field = field
        self.value = value


class DuplicateUserError(DuplicateEntityError):
    """Raised when a user with the same username already exists."""

    def __init__(
        self,
        username: str,
        collection_name: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(
            f"User with username '{username}' already exists",
            field="username",
            value=username,
            operation="create_new_user",
            collection_name=collection_name,
            context=context,
        )
        self.username = username


class UserValidationError(BorrowItError):
    """
    Raised when user input fails validation before any write.

    Attributes:
        message: Error message
        error_paths: Field names that failed validation
        context: Additional context information
    """

    def __init__(
        self,
        message: str,
        error_paths: Optional[List[str]] = None,
        context: Optional[Dict[str, Any]] = None,
    ) -> None:
        context = context or {}
        if error_paths:
            context["error_paths"] = error_paths
        super().__init__(message, context=context)
        self.error_paths = error_paths or []
