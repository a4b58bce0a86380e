class RefstructException(Exception):
    '''Base class to extend in order to throw exception in refstruct.

    It takes the message and the chain of the fields that caused the
    exception, outermost first.
    '''

    def __init__(self, message='', chain=None):
        self.message = message
        self.chain = chain if chain is not None else []
        super().__init__(message)

    def __str__(self):
        if not self.chain:
            return self.message

        return '%s: %s' % ('.'.join(self.chain), self.message)


class SchemaException(RefstructException):
    '''The schema definition itself is wrong (e.g. a variable sized member).'''
    pass


class DecodeException(RefstructException):
    pass


class EncodeException(RefstructException):
    pass
