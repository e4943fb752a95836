"""Resource services: Validate -> Fetch -> Authorize -> Mutate/Query -> Project."""
from .assessments import AssessmentsService
from .attendance import AttendanceService
from .notes import NotesService
from .students import StudentsService
from .users import UsersService

__all__ = ["AttendanceService", "NotesService", "StudentsService", "AssessmentsService", "UsersService"]
