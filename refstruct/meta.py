'''
Declarative way of building a Schema, maybe too inspired by how Django does a similar thing:

    class Dimensions(Struct):
        width  = Member(fields.INT)
        height = Member(fields.INT)

    class Image(Struct):
        size    = Member(Dimensions)
        offset  = Member(fields.UINT)
        count   = Member(fields.UINT)
        pixels  = Array(fields.BYTE, 'count', 'offset')
        next    = Reference('self', 'offset')

The class attribute "schema" is the Schema built from the declarations in
order of definition, the ones of the parent classes first.
'''
import logging

from .core import Schema


logger = logging.getLogger(__name__)

SELF = 'self'


def resolve_type(value_type, schema: Schema):
    ''''self' is the schema under construction, a Struct is its schema.'''
    if isinstance(value_type, str) and value_type == SELF:
        return schema

    if isinstance(value_type, MetaStruct):
        return value_type.schema

    return value_type


class Declaration(object):

    def contribute_to_schema(self, schema: Schema, name: str) -> None:
        raise NotImplementedError(f'method {self.__class__.__name__}.contribute_to_schema() not implemented')


class Member(Declaration):

    def __init__(self, type):
        self.type = type

    def contribute_to_schema(self, schema, name):
        schema.add_member(resolve_type(self.type, schema), name)


class Array(Declaration):

    def __init__(self, type, count, offset, relative=False):
        self.type = type
        self.count = count
        self.offset = offset
        self.relative = relative

    def contribute_to_schema(self, schema, name):
        schema.add_array(resolve_type(self.type, schema), name, self.count, self.offset, relative=self.relative)


class Reference(Declaration):

    def __init__(self, type, offset, relative=False):
        self.type = type
        self.offset = offset
        self.relative = relative

    def contribute_to_schema(self, schema, name):
        schema.add_reference(resolve_type(self.type, schema), name, self.offset, relative=self.relative)


class Static(Declaration):

    def __init__(self, value):
        self.value = value

    def contribute_to_schema(self, schema, name):
        schema.add_static(name, self.value)


class Rule(Declaration):
    '''The name of the attribute is not used.'''

    def __init__(self, rule):
        self.rule = rule

    def contribute_to_schema(self, schema, name):
        schema.add_rule(self.rule)


class Meta(object):
    """Class containing metadata about the declarations"""

    def __init__(self):
        self.declarations = {}


class MetaStruct(type):

    def __new__(mcs, name, bases, attrs):
        declarations = {}
        new_attrs = {}
        for attr_name, value in attrs.items():
            if isinstance(value, Declaration):
                declarations[attr_name] = value
            else:
                new_attrs[attr_name] = value

        new_cls = super().__new__(mcs, name, bases, new_attrs)
        new_cls._meta = Meta()

        # handle inheritance
        for parent in bases:
            if isinstance(parent, MetaStruct):
                new_cls._meta.declarations.update(parent._meta.declarations)

        new_cls._meta.declarations.update(declarations)

        schema = Schema(name)
        for attr_name, declaration in new_cls._meta.declarations.items():
            logger.debug('contribute_to_schema() for field \'%s.%s\'', name, attr_name)
            declaration.contribute_to_schema(schema, attr_name)

        new_cls.schema = schema

        return new_cls

    @property
    def size(cls) -> int:
        return cls.schema.size


class Struct(metaclass=MetaStruct):
    '''Base class for the declarative structs: all the operations are
    delegated to the schema.'''

    @classmethod
    def decode(cls, buffer, offset=0, ctx=None):
        return cls.schema.decode(buffer, offset, ctx)

    @classmethod
    def encode(cls, tree, ctx=None, offset=0):
        return cls.schema.encode(tree, ctx, offset)

    @classmethod
    def report(cls, buffer, offset=0, **options):
        return cls.schema.report(buffer, offset, **options)

    @classmethod
    def validate(cls, buffer, offset=0) -> bool:
        return cls.schema.validate(buffer, offset)

    @classmethod
    def offset_of(cls, name):
        return cls.schema.offset_of(name)
