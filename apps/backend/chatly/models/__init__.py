from .db import Base, engine
from .platform_client import PlatformClient
from .contact import SocialContact
from .conversation import Conversation
from .message import Message

def create_all():
    Base.metadata.create_all(bind=engine)
