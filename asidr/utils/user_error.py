
class UserError(RuntimeError):
    """
    Base class for all exceptions that are to be presented to a user.
    """

    def __init__(self, fmt: str, *fmt_args: object):
        self.fmt = fmt
        self.fmt_args = fmt_args
        self.code = 1
        super().__init__(fmt % fmt_args if fmt_args else fmt)


class ConfigurationError(UserError):
    """ Reference data or comment definitions can't be loaded. """

    def __init__(self, fmt: str, *fmt_args: object):
        super().__init__(fmt, *fmt_args)
        self.code = 2


class AlgorithmError(ConfigurationError):
    """ An ASI algorithm document is malformed or refers to unknown names. """


class InvalidMutationError(UserError, ValueError):
    """ Mutation text doesn't match any accepted notation. """

    def __init__(self, text: str, fmt: str = 'Invalid mutation: %r.', *fmt_args):
        self.text = text
        super().__init__(fmt, *(fmt_args or (text, )))
