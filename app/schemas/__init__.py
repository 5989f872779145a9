from app.schemas.common import ErrorBody, NoteRequest  # noqa: F401
