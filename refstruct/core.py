"""
Core module for the abstraction of a binary format

A Schema is the description of a C-like struct: a list of members laid out
one after the other, plus arrays and references living elsewhere in the
buffer and located through the value of some member (their offset and,
for arrays, their count).
"""
import logging
import struct
from collections import namedtuple
from typing import Dict, List, Optional

from .context import DecodeContext, EncodeContext
from .exceptions import (
    DecodeException,
    EncodeException,
    RefstructException,
    SchemaException,
)
from .fields import Field, VARIABLE_SIZE, footprint
from .properties import Dependency, Static
from .report import Report


logger = logging.getLogger(__name__)

MemberSlot = namedtuple('MemberSlot', ['name', 'type', 'offset'])
ArraySlot = namedtuple('ArraySlot', ['name', 'type', 'count', 'offset', 'relative'])
ReferenceSlot = namedtuple('ReferenceSlot', ['name', 'type', 'offset', 'relative'])


class Schema(Field):
    """
    Description of a struct: its main attribute is the size, i.e. the bytes
    occupied by the members; arrays and references are out of it.

    A Schema is itself a type, so it can be a member, the element of an
    array or the target of a reference of another Schema (or of itself).

    Once built a Schema is not modified anymore and can be shared: all the
    state of a decoding/encoding lives in the context.
    """

    def __init__(self, name=''):
        super().__init__()
        self.name = name
        self.members: List[MemberSlot] = []
        self.arrays: List[ArraySlot] = []
        self.references: List[ReferenceSlot] = []
        self.statics: List[Static] = []
        self.rules = []
        self._size = 0

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, self.name)

    def __str__(self):
        msg = '%s:\n' % (self.name or self.__class__.__name__)
        for member in self.members:
            msg += ' %04x %s: %r\n' % (member.offset, member.name, member.type)
        for array in self.arrays:
            msg += ' [%s] %s: %r @ %s\n' % (array.count.name, array.name, array.type, array.offset.name)
        for reference in self.references:
            msg += ' *%s: %r @ %s\n' % (reference.name, reference.type, reference.offset.name)
        return msg

    @property
    def size(self) -> int:
        '''the size MUST not be set but MUST be derived from the members'''
        return self._size

    def get_names(self) -> List[str]:
        '''The names of the fields that will be present in the decoded data.'''
        names = [_.name for _ in self.members]
        names += [_.name for _ in self.arrays]
        names += [_.name for _ in self.references]
        names += [_.name for _ in self.statics if not _.synthetic]

        return names

    def _check_name(self, name: str) -> None:
        if not isinstance(name, str) or not name:
            raise SchemaException(f'{name!r} is not a valid field name for \'{self.name}\'')

        if name in self.get_names():
            raise SchemaException(f'field {name} is already present in schema \'{self.name}\'', chain=[name])

    def _bind(self, source, owner: str, role: str) -> Dependency:
        dependency = Dependency.from_source(source, owner, role)
        if not dependency.is_field:
            self.statics.append(dependency.static)

        return dependency

    def add_member(self, type, name: str) -> 'Schema':
        self._check_name(name)

        if type is self:
            raise SchemaException(f'schema \'{self.name}\' cannot contain itself', chain=[name])

        if getattr(type, 'size', VARIABLE_SIZE) is VARIABLE_SIZE:
            raise SchemaException(
                f'member must have a fixed size but {type!r} has not', chain=[name])

        self.members.append(MemberSlot(name, type, self._size))
        self._size += type.size

        return self

    def add_array(self, type, name: str, count, offset, relative=False) -> 'Schema':
        '''count and offset can be integers or the names of a member (or a static)
        of this schema; if relative the offset is from the start of the struct.'''
        self._check_name(name)

        if getattr(type, 'size', VARIABLE_SIZE) is VARIABLE_SIZE:
            raise SchemaException(
                f'array elements must have a fixed size but {type!r} has not', chain=[name])

        if type.size == 0:
            raise SchemaException(
                f'array elements cannot have a size of zero like {type!r}', chain=[name])

        self.arrays.append(ArraySlot(
            name,
            type,
            self._bind(count, name, 'count'),
            self._bind(offset, name, 'offset'),
            relative,
        ))

        return self

    def add_reference(self, type, name: str, offset, relative=False) -> 'Schema':
        self._check_name(name)

        self.references.append(ReferenceSlot(name, type, self._bind(offset, name, 'offset'), relative))

        return self

    def add_static(self, name: str, value) -> 'Schema':
        self._check_name(name)

        self.statics.append(Static(name, value))

        return self

    def add_rule(self, rule) -> 'Schema':
        if not callable(rule):
            raise SchemaException(f'rule {rule!r} is not callable')

        self.rules.append(rule)

        return self

    def offset_of(self, name: str) -> Optional[int]:
        '''Returns the offset of the member relative to the start of the struct.'''
        for member in self.members:
            if member.name == name:
                return member.offset

        return None

    def _is_member(self, dependency: Dependency) -> bool:
        return dependency.is_field and self.offset_of(dependency.name) is not None

    def _fixed_value(self, dependency: Dependency) -> int:
        '''The value of a source that is not a member: a literal or a static.'''
        if not dependency.is_field:
            return dependency.resolve(None)

        for static in self.statics:
            if static.name == dependency.name:
                return static.value

        raise EncodeException(f'no member or static named \'{dependency.name}\'')

    def _pointer_fields(self) -> List[str]:
        names = [_.count.name for _ in self.arrays if _.count.is_field]
        names += [_.offset.name for _ in self.arrays if _.offset.is_field]
        names += [_.offset.name for _ in self.references if _.offset.is_field]

        return names

    def _decode_value(self, value_type, ctx: DecodeContext, address: int, name: str):
        try:
            return value_type.decode(ctx.buffer, address, ctx)
        except DecodeException as e:
            e.chain.insert(0, name)
            raise
        except (struct.error, ValueError, IndexError, TypeError) as e:
            raise DecodeException(str(e), chain=[name]) from e

    def decode(self, buffer, offset=0, ctx: Optional[DecodeContext] = None) -> Dict:
        '''This is one of the main APIs to take care of: its aim is to take binary
        data and transform it into a dictionary following this schema.

        The members are decoded first, since arrays and references need their
        values, then the arrays and the references; at the end the rules are
        checked against the data.

        A reference to an address already decoded (with the same type) returns
        the same object: a struct pointing to itself becomes a dictionary
        containing itself. The data of a struct is registered before its fields
        are decoded so also cycles passing through a struct still in progress
        terminate.'''
        if ctx is None:
            ctx = DecodeContext(buffer)

        base = offset
        data = {}
        key = (base, self)
        ctx.cache[key] = data

        try:
            self._decode_fields(data, ctx, base)
        except RefstructException:
            ctx.cache.pop(key, None)
            raise

        for idx, rule in enumerate(self.rules):
            message = rule(data, ctx.buffer)
            if message:
                ctx.add_error(message, path=f'{ctx.path}:rule[{idx}]')

        ctx.mark_read(base, self.size)

        if ctx.hide_pointer_fields:
            for name in self._pointer_fields():
                data.pop(name, None)

        return data

    def _decode_fields(self, data, ctx: DecodeContext, base: int) -> None:
        for static in self.statics:
            if not static.synthetic:
                data[static.name] = static.value

        for member in self.members:
            logger.debug('decoding %s.%s at 0x%x', self.name, member.name, base + member.offset)
            with ctx.enter(f'.{member.name}'):
                data[member.name] = self._decode_value(member.type, ctx, base + member.offset, member.name)

        for array in self.arrays:
            with ctx.enter(f'.{array.name}'):
                data[array.name] = self._decode_array(array, data, ctx, base)

        for reference in self.references:
            with ctx.enter(f'.{reference.name}'):
                try:
                    data[reference.name] = self._decode_reference(reference, data, ctx, base)
                except DecodeException as e:
                    ctx.add_error(f'cannot decode reference {reference.name}: {e}')
                    data[reference.name] = None

    def _decode_array(self, array: ArraySlot, data, ctx: DecodeContext, base: int) -> List:
        try:
            count = array.count.resolve(data)
            start = array.offset.resolve(data)
        except DecodeException as e:
            e.chain.insert(0, array.name)
            raise

        if array.relative:
            start += base

        stride = array.type.size
        length = count * stride

        logger.debug('decoding %s.%s: %d elements at 0x%x', self.name, array.name, count, start)

        if count < 0:
            raise DecodeException(f'negative count {count}', chain=[array.name])

        if count and (start < 0 or start + length > len(ctx.buffer)):
            raise DecodeException(
                f'{count} elements at offset 0x{start:x} are outside the buffer', chain=[array.name])

        values = []
        for idx in range(count):
            with ctx.enter(f'[{idx}]'):
                values.append(self._decode_value(array.type, ctx, start + idx * stride, f'{array.name}[{idx}]'))

        ctx.mark_read(start, length)
        ctx.register_array(array.name, start, count, length)

        return values

    def _decode_reference(self, reference: ReferenceSlot, data, ctx: DecodeContext, base: int):
        address = reference.offset.resolve(data)
        if reference.relative:
            address += base

        key = (address, reference.type)
        if key in ctx.cache:
            logger.debug('%s.%s at 0x%x already decoded', self.name, reference.name, address)
            return ctx.cache[key]

        logger.debug('decoding %s.%s at 0x%x', self.name, reference.name, address)

        value = self._decode_value(reference.type, ctx, address, reference.name)
        ctx.cache[key] = value

        if reference.type.size is not VARIABLE_SIZE and not isinstance(reference.type, Schema):
            ctx.mark_read(address, reference.type.size)

        return value

    def validate(self, buffer, offset=0) -> bool:
        '''True if the buffer can be decoded, the errors found by the rules
        don't count.'''
        try:
            self.decode(buffer, offset)
        except RefstructException as e:
            logger.debug('validation of %s failed: %s', self.name, e)
            return False

        return True

    def report(self, buffer, offset=0, monitor_usage=True, hide_pointer_fields=False) -> Report:
        '''Decode the buffer returning also the errors found and the statistics
        about it.'''
        ctx = DecodeContext(buffer, monitor_usage=monitor_usage, hide_pointer_fields=hide_pointer_fields)
        data = self.decode(ctx.buffer, offset, ctx)

        return Report(ctx, data)

    def size_of_tree(self, tree) -> int:
        '''Number of bytes needed to encode the tree, arrays and references included.

        It's the same traversal of encode() without writing anything.'''
        ctx = EncodeContext()
        self.encode(tree, ctx, ctx.allocate(self.size))

        return ctx.end

    def encode(self, tree, ctx: Optional[EncodeContext] = None, offset=0) -> EncodeContext:
        '''
        Encode the tree into a new buffer (or into the one of the context, in this
        case the space for this struct at offset must be already allocated).

        The space for the arrays and the references is allocated in order of
        traversal after this struct and their offsets and counts are written
        back into the tree, so that the members that hold them are encoded
        with the right value.
        '''
        if ctx is None:
            ctx = EncodeContext(self.size_of_tree(tree))
            offset = ctx.allocate(self.size)

        if not isinstance(tree, dict):
            raise EncodeException(f'{tree!r} is not a dictionary for \'{self.name}\'')

        base = offset
        ctx.allocations.setdefault(id(tree), base)

        for array in self.arrays:
            with ctx.enter(f'.{array.name}'):
                self._encode_array(array, tree, ctx, base)

        for reference in self.references:
            with ctx.enter(f'.{reference.name}'):
                self._encode_reference(reference, tree, ctx, base)

        for member in self.members:
            with ctx.enter(f'.{member.name}'):
                if member.name not in tree:
                    ctx.add_error(f'missing member \'{member.name}\'')
                    continue

                logger.debug('encoding %s.%s at 0x%x', self.name, member.name, base + member.offset)
                self._encode_value(member.type, tree[member.name], ctx, base + member.offset)

        return ctx

    def _encode_value(self, value_type, value, ctx: EncodeContext, address: int) -> None:
        # a nested schema is traversed also when measuring, it can have arrays and references
        if ctx.measuring and not isinstance(value_type, Schema):
            return

        try:
            value_type.encode(value, ctx, address)
        except EncodeException as e:
            ctx.add_error(str(e))

    def _encode_array(self, array: ArraySlot, tree, ctx: EncodeContext, base: int) -> None:
        if array.name not in tree:
            ctx.add_error(f'missing array \'{array.name}\'')
            return

        values = tree[array.name]
        if not isinstance(values, (list, tuple)):
            ctx.add_error(f'array \'{array.name}\' is not a sequence but {values.__class__.__name__}')
            return

        count = len(values)
        stride = array.type.size
        length = count * stride

        if not self._is_member(array.count):
            try:
                expected = self._fixed_value(array.count)
            except EncodeException as e:
                ctx.add_error(str(e))
                return

            if expected != count:
                ctx.add_error(f'array \'{array.name}\' must have {expected} elements, not {count}')
                return

        if self._is_member(array.offset):
            start = ctx.allocate(length)
            array.offset.resolve_and_set(tree, start - base if array.relative else start)
        else:
            try:
                start = self._fixed_value(array.offset) + (base if array.relative else 0)
            except EncodeException as e:
                ctx.add_error(str(e))
                return
            ctx.claim(start, length)

        if self._is_member(array.count):
            array.count.resolve_and_set(tree, count)

        logger.debug('encoding %s.%s: %d elements at 0x%x', self.name, array.name, count, start)

        for idx, value in enumerate(values):
            if isinstance(value, dict):
                ctx.allocations.setdefault(id(value), start + idx * stride)

        for idx, value in enumerate(values):
            with ctx.enter(f'[{idx}]'):
                self._encode_value(array.type, value, ctx, start + idx * stride)

    def _encode_reference(self, reference: ReferenceSlot, tree, ctx: EncodeContext, base: int) -> None:
        if reference.name not in tree:
            ctx.add_error(f'missing reference \'{reference.name}\'')
            return

        value = tree[reference.name]
        placed = ctx.allocations.get(id(value)) if isinstance(value, dict) else None

        try:
            size = footprint(reference.type, value)
        except EncodeException as e:
            ctx.add_error(str(e))
            return

        if self._is_member(reference.offset):
            if placed is not None:
                address = placed
            else:
                address = ctx.allocate(size)
                logger.debug('encoding %s.%s at 0x%x', self.name, reference.name, address)
                self._encode_value(reference.type, value, ctx, address)

            reference.offset.resolve_and_set(tree, address - base if reference.relative else address)
            return

        try:
            address = self._fixed_value(reference.offset) + (base if reference.relative else 0)
        except EncodeException as e:
            ctx.add_error(str(e))
            return

        ctx.claim(address, size)
        if placed != address:
            self._encode_value(reference.type, value, ctx, address)
