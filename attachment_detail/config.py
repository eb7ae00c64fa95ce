"""
Centralized configuration management for attachment_detail
All configurable values consolidated in one place for easy management
"""

import os
from typing import Dict, Any


class AttachmentDetailConfig:
    """Configuration management for attachment detail with environment variable override support"""

    def __init__(self):
        # Input Limits
        self.MAX_FILE_SIZE_MB = int(os.getenv('AD_MAX_FILE_SIZE_MB', 50))

        # Rule Compilation
        self.STRICT_RULES = os.getenv('AD_STRICT_RULES', 'false').lower() == 'true'

        # Header Parameter Decoding
        self.DECODE_RFC2047_PARAMS = os.getenv('AD_DECODE_RFC2047_PARAMS', 'true').lower() == 'true'

        # Tags
        self.TAG_SEPARATOR = os.getenv('AD_TAG_SEPARATOR', ',')

        # Logging
        self.DEFAULT_LOG_LEVEL = os.getenv('AD_DEFAULT_LOG_LEVEL', 'INFO')
        self.VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR"]

        # Content-Transfer-Encoding values that do not count as MIME errors
        self.RECOGNIZED_ENCODINGS = ["7bit", "8bit", "binary", "quoted-printable", "base64", "uuencode"]

        # Filenames that force the effective type to text/html
        self.HTML_SUFFIX_PATTERN = r'\.s?html?$'

    def get_config_dict(self) -> Dict[str, Any]:
        """Get all configuration values as a dictionary"""
        return {
            'max_file_size_mb': self.MAX_FILE_SIZE_MB,
            'strict_rules': self.STRICT_RULES,
            'decode_rfc2047_params': self.DECODE_RFC2047_PARAMS,
            'tag_separator': self.TAG_SEPARATOR,
            'default_log_level': self.DEFAULT_LOG_LEVEL,
            'valid_log_levels': self.VALID_LOG_LEVELS,
            'recognized_encodings': self.RECOGNIZED_ENCODINGS,
            'html_suffix_pattern': self.HTML_SUFFIX_PATTERN,
        }


# Create a singleton instance
config = AttachmentDetailConfig()
