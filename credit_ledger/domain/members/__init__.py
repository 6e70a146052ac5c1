"""Member domain exports"""

from .models import Member
from .service import MemberService

__all__ = ["Member", "MemberService"]
