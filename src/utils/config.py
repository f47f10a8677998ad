# ========================
# src/utils/config.py
# ========================

"""
Configuration Management

Centralized configuration for the import service with environment support.
"""

import json
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

class Config:
    """
    Configuration class for the contact import service.
    Supports environment variables and default values.
    """
    
    def __init__(self, config_dict: Optional[Dict[str, Any]] = None):
        """
        Initialize configuration.
        
        Args:
            config_dict (dict): Optional configuration overrides
        """
        # Batch Sizing and Backpressure
        self.INITIAL_BATCH_SIZE = int(os.getenv('IMPORT_INITIAL_BATCH_SIZE', '10'))
        self.MAX_BATCH_SIZE = int(os.getenv('IMPORT_MAX_BATCH_SIZE', '300'))
        self.BATCH_GROWTH_FACTOR = int(os.getenv('IMPORT_BATCH_GROWTH_FACTOR', '2'))
        self.MAX_ACTIVE_BATCHES = int(os.getenv('IMPORT_MAX_ACTIVE_BATCHES', '6'))
        
        # Storage
        self.STORE_BACKEND = os.getenv('STORE_BACKEND', 'sqlite')
        self.DATABASE_PATH = os.getenv('DATABASE_PATH', 'data/contacts.db')
        
        # File Paths
        self.UPLOAD_DIR = os.getenv('UPLOAD_DIR', 'data/uploaded')
        self.REPORT_DIR = os.getenv('REPORT_DIR', 'data/reports')
        self.DEFAULT_SAMPLE_FILE = os.getenv('SAMPLE_FILE', 'data/raw/contacts.csv')
        
        # Data Generation Settings
        self.DEFAULT_SAMPLE_ROWS = int(os.getenv('SAMPLE_ROWS', '1000'))
        self.SAMPLE_ERROR_RATE = float(os.getenv('SAMPLE_ERROR_RATE', '0.1'))
        
        # Mail Settings
        self.MAIL_BACKEND = os.getenv('MAIL_BACKEND', 'log')
        self.SMTP_HOST = os.getenv('SMTP_HOST', 'localhost')
        self.SMTP_PORT = int(os.getenv('SMTP_PORT', '25'))
        self.MAIL_FROM = os.getenv('MAIL_FROM', 'no-reply@localhost')
        self.SENDGRID_API_KEY = os.getenv('SENDGRID_API_KEY', '')
        self.SENDGRID_FROM_EMAIL = os.getenv('SENDGRID_FROM_EMAIL', self.MAIL_FROM)
        self.MAIL_SUBJECT = os.getenv('MAIL_SUBJECT', 'A message for $name')
        
        # API Settings
        self.API_PORT = int(os.getenv('API_PORT', '8000'))
        
        # Logging Configuration
        self.LOG_LEVEL = os.getenv('LOG_LEVEL', 'INFO')
        self.LOG_PROGRESS_INTERVAL = int(os.getenv('LOG_PROGRESS_INTERVAL', '10'))
        
        # Override with provided config
        if config_dict:
            self._update_from_dict(config_dict)
    
    def _update_from_dict(self, config_dict: Dict[str, Any]) -> None:
        """Apply overrides; keys are case-insensitive, unknown keys are ignored."""
        for key, value in config_dict.items():
            attr = key.upper()
            if attr in self.to_dict():
                setattr(self, attr, value)
    
    def data_directories(self) -> List[Path]:
        """Directories the service writes into."""
        return [
            Path(self.UPLOAD_DIR),
            Path(self.REPORT_DIR),
            Path(self.DEFAULT_SAMPLE_FILE).parent,
            Path(self.DATABASE_PATH).parent,
        ]
    
    def ensure_directories(self) -> None:
        """Create the upload, report, sample and database directories."""
        for directory in self.data_directories():
            directory.mkdir(parents=True, exist_ok=True)
    
    def validate_config(self) -> Dict[str, bool]:
        """
        Validate configuration values.
        
        Returns:
            dict: Validation results for each setting
        """
        checks = {
            'initial_batch_size': self.INITIAL_BATCH_SIZE > 0,
            'max_batch_size': self.MAX_BATCH_SIZE >= self.INITIAL_BATCH_SIZE,
            'batch_growth_factor': self.BATCH_GROWTH_FACTOR >= 1,
            'max_active_batches': self.MAX_ACTIVE_BATCHES > 0,
            'log_progress_interval': self.LOG_PROGRESS_INTERVAL > 0,
            'sample_rows': self.DEFAULT_SAMPLE_ROWS > 0,
            'sample_error_rate': 0.0 <= self.SAMPLE_ERROR_RATE <= 1.0,
            'api_port': 0 < self.API_PORT <= 65535,
            'smtp_port': 0 < self.SMTP_PORT <= 65535,
            'store_backend': self.STORE_BACKEND.lower() in ('memory', 'sqlite'),
            'mail_backend': self.MAIL_BACKEND.lower() in ('log', 'smtp', 'sendgrid'),
            'log_level': self.LOG_LEVEL.upper() in ('DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL'),
        }
        return checks
    
    def invalid_settings(self) -> List[str]:
        """Names of settings that failed validation."""
        return [name for name, ok in self.validate_config().items() if not ok]
    
    def to_dict(self) -> Dict[str, Any]:
        """All settings, keyed by attribute name."""
        return {key: value for key, value in vars(self).items() if key.isupper()}
    
    @classmethod
    def load_from_file(cls, file_path: str) -> 'Config':
        """Load overrides from a JSON file on top of the environment."""
        with open(file_path, 'r', encoding='utf-8') as f:
            return cls(json.load(f))
    
    def __str__(self) -> str:
        settings = self.to_dict()
        width = max(len(key) for key in settings)
        return "\n".join(f"  {key.ljust(width)} = {value}" for key, value in sorted(settings.items()))
