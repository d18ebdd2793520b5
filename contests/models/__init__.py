from .contest import Contest
from .question import Question
from .submission import Submission
from .result import Result
from .audit import AuditLog
from .user_profile import UserProfile

__all__ = [
    'Contest', 'Question', 'Submission', 'Result',
    'AuditLog', 'UserProfile'
]
