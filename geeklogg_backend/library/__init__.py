from geeklogg_backend.library.use_cases import (
    MediaNotFoundError,
    MediaUseCases,
    MediaValidationError,
)

__all__ = [
    "MediaNotFoundError",
    "MediaUseCases",
    "MediaValidationError",
]
