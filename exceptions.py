class DuplicateExerciseError(ValueError):
    """Raised when a custom exercise name is already taken."""

    def __init__(self, name: str) -> None:
        super().__init__(f"exercise '{name}' already exists")
        self.name = name


class MigrationError(RuntimeError):
    """Raised when local data could not be fully copied to the remote store."""
