from parley.db.models.block import UserBlock
from parley.db.models.conversation import Conversation
from parley.db.models.follow import UserFollow
from parley.db.models.message import Message
from parley.db.models.setting import Setting
from parley.db.models.user import User

__all__ = ["Conversation", "Message", "Setting", "User", "UserBlock", "UserFollow"]
