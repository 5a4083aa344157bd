import logging
import logging.config

from pinquiz.config import settings


def build_logging_config(level: str = None) -> dict:
    level = (level or settings.log_level).upper()
    return {
        'version': 1,
        'disable_existing_loggers': False,
        'formatters': {
            'standard': {
                'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
            },
        },
        'handlers': {
            'console': {
                'level': level,
                'class': 'logging.StreamHandler',
                'formatter': 'standard',
            },
        },
        'loggers': {
            'pinquiz': {
                'handlers': ['console'],
                'level': level,
                'propagate': False,
            },
            # supabase realtime is chatty at INFO
            'realtime': {
                'handlers': ['console'],
                'level': 'WARNING',
                'propagate': False,
            },
        }
    }


def configure_logging(level: str = None):
    logging.config.dictConfig(build_logging_config(level))
