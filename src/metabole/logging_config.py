"""
Logging configuration for the Metabole package.

Library modules only create module-level loggers
(``logging.getLogger(__name__)``); applications call :func:`setup_logging`
once to route them to the console and to rotating log files.

Usage
-----
>>> from metabole.logging_config import setup_logging
>>> setup_logging()
"""

import logging
import logging.config
from pathlib import Path


def setup_logging(default_level=logging.INFO, log_dir="logs"):
    """
    Setup logging configuration for applications using Metabole.

    Parameters
    ----------
    default_level : int, optional
        Default logging level. Default is logging.INFO.
    log_dir : str, optional
        Directory to store log files. Default is "logs".

    Returns
    -------
    None
        The function configures the logging system directly.
    """
    log_path = Path(log_dir)
    log_path.mkdir(parents=True, exist_ok=True)

    config = {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s [%(levelname)s] %(name)s: %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
            'detailed': {
                'format': '%(asctime)s [%(levelname)s] %(name)s (%(filename)s:%(lineno)d): %(message)s',
                'datefmt': '%Y-%m-%d %H:%M:%S'
            },
        },
        'handlers': {
            'console': {
                'class': 'logging.StreamHandler',
                'level': 'INFO',
                'formatter': 'standard',
                'stream': 'ext://sys.stdout',
            },
            'file': {
                'class': 'logging.handlers.RotatingFileHandler',
                'level': 'DEBUG',
                'formatter': 'detailed',
                'filename': str(log_path / 'propagation.log'),
                'maxBytes': 10485760,  # 10 MB
                'backupCount': 5,
                'encoding': 'utf8'
            },
        },
        'loggers': {
            '': {  # root logger
                'handlers': ['console', 'file'],
                'level': default_level,
                'propagate': True
            },
            'metabole.integrators': {
                'handlers': ['file'],
                'level': 'DEBUG',
                'propagate': False
            },
        }
    }

    logging.config.dictConfig(config)

    logger = logging.getLogger(__name__)
    logger.debug("Logging configuration applied")
