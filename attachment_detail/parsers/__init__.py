from .eml_parser import EmlFormatParser
from .msg_parser import MSG_SUPPORT, MsgFormatParser

__all__ = ['EmlFormatParser', 'MsgFormatParser', 'MSG_SUPPORT']
