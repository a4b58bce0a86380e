import logging

from .exceptions import DecodeException, SchemaException


logger = logging.getLogger(__name__)


class Static(object):
    '''A constant annotation of a Schema: it appears in the decoded data
    but it's not backed by any byte.

    The synthetic ones are created by the schema to remember a literal
    count or offset and are never shown in the decoded data.'''

    def __init__(self, name: str, value, synthetic=False):
        self.name = name
        self.value = value
        self.synthetic = synthetic

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name}={self.value!r})>'


class Dependency:
    '''This makes the relation between an array/reference and the sibling
    field containing its count or its offset.

    The relation is defined in one direction for decoding (the value is read
    from the field) and must be reversed during the encoding (the value is
    written back into the field), in practice this allows to write something like

        schema = Schema('TLV')\\
            .add_member(fields.UINT, 'length')\\
            .add_member(fields.UINT, 'offset')\\
            .add_array(fields.BYTE, 'data', 'length', 'offset')

    and have the tree's "length" and "offset" always consistent with "data".
    '''

    def __init__(self, name: str):
        self.name = name

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.name})>'

    @classmethod
    def from_source(cls, source, owner: str, role: str):
        '''Bind a source given to the builder: integers are captured as
        synthetic statics, strings are names of sibling fields.'''
        if isinstance(source, bool):
            raise SchemaException(f'{role} for \'{owner}\' must be an integer or a field name, not a bool')

        if isinstance(source, int):
            return StaticDependency(Static(f'#{owner}.{role}', source, synthetic=True))

        if isinstance(source, str):
            return cls(source)

        raise SchemaException(
            f'{role} for \'{owner}\' must be an integer or a field name, not {source.__class__.__name__}')

    @property
    def is_field(self):
        return True

    def resolve(self, data) -> int:
        '''With this method we resolve the value with respect to the data
        decoded so far.'''
        try:
            value = data[self.name]
        except KeyError:
            raise DecodeException(f'no field named \'{self.name}\' to resolve from')

        if isinstance(value, bool) or not isinstance(value, int):
            raise DecodeException(f'field \'{self.name}\' is {value!r} and not an integer')

        logger.debug(' resolved \'%s\' with value %d', self.name, value)

        return value

    def resolve_and_set(self, data, value: int) -> None:
        data[self.name] = value


class StaticDependency(Dependency):
    '''The value is a literal fixed when the schema is built.'''

    def __init__(self, static: Static):
        super().__init__(static.name)
        self.static = static

    def __repr__(self):
        return f'<{self.__class__.__name__}({self.static.value})>'

    @property
    def is_field(self):
        return False

    def resolve(self, data) -> int:
        return self.static.value

    def resolve_and_set(self, data, value: int) -> None:
        pass
