""" Logging configuration for the ASIDR command-line tools.

Pass LOGGING to logging.config.dictConfig(). Messages go to standard error,
so they never mix with reports that a tool writes to standard output. To keep
a log file as well, add 'rotating_file' to the handlers of the 'asidr' logger
and point LOG_FILE at a folder the user can write to.
"""

LOG_FILE = '/tmp/asidr.log'
LOG_FORMAT = '%(asctime)s[%(levelname)s]%(name)s.%(funcName)s(): %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

LOGGING = {
    'version': 1,

    # Module loggers are created at import time, before dictConfig() runs.
    'disable_existing_loggers': False,

    'formatters': {
        'asidr': {'format': LOG_FORMAT, 'datefmt': DATE_FORMAT},
    },
    'handlers': {
        'stderr': {
            'class': 'logging.StreamHandler',
            'stream': 'ext://sys.stderr',
            'formatter': 'asidr',
        },
        'rotating_file': {
            'class': 'logging.handlers.RotatingFileHandler',
            'formatter': 'asidr',
            'filename': LOG_FILE,
            'delay': True,
            'maxBytes': 5 * 1024 * 1024,
            'backupCount': 3,
        },
    },
    'root': {'handlers': ['stderr'], 'level': 'WARNING'},
    'loggers': {
        # Scripts run through runpy log as __main__.
        '__main__': {'level': 'INFO'},
        'asidr': {'level': 'INFO'},
    },
}
