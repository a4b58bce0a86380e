"""
A Field is a "fundamental" datatype from the format point of view: something
directly decodable/encodable at a given offset without any indirection.

Every type usable inside a Schema (Schema itself included) exposes the same
attributes:

 - size: the number of bytes occupied, or VARIABLE_SIZE if it depends on the value
 - decode(buffer, offset, ctx=None): returns the value found at offset
 - encode(value, ctx, offset): writes the value into ctx.buffer at offset
 - size_of_value(value): mandatory only for variable sized types, it must
   return exactly the number of bytes that encode() is going to write

Subclassing Field is not needed, any object with these attributes can be used.
"""
import logging
import struct

from .enum import Endianess
from .exceptions import DecodeException, EncodeException


VARIABLE_SIZE = None


def read(buffer, offset: int, length: int) -> bytes:
    '''Return length bytes at offset, failing instead of returning a short read.'''
    if offset < 0 or offset + length > len(buffer):
        raise DecodeException(
            f'cannot read {length} bytes at offset 0x{offset:x} (buffer size is 0x{len(buffer):x})')

    return bytes(buffer[offset:offset + length])


def write(ctx, offset: int, raw: bytes) -> None:
    buffer = ctx.buffer
    if offset < 0 or offset + len(raw) > len(buffer):
        raise EncodeException(
            f'cannot write {len(raw)} bytes at offset 0x{offset:x} (buffer size is 0x{len(buffer):x})')

    buffer[offset:offset + len(raw)] = raw


def footprint(value_type, value) -> int:
    '''Number of bytes the type occupies at its own address when encoding value.

    This is the only formula used to allocate space while encoding, both
    when measuring and when writing.'''
    if value_type.size is VARIABLE_SIZE:
        return value_type.size_of_value(value)

    return value_type.size


class Field(object):
    """Base class to subclass from"""

    size = VARIABLE_SIZE

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def __repr__(self):
        return '<%s()>' % self.__class__.__name__

    def decode(self, buffer, offset=0, ctx=None):
        raise NotImplementedError(f'method {self.__class__.__name__}.decode() not implemented')

    def encode(self, value, ctx, offset):
        raise NotImplementedError(f'method {self.__class__.__name__}.encode() not implemented')

    def size_of_value(self, value) -> int:
        if self.size is VARIABLE_SIZE:
            raise NotImplementedError(f'method {self.__class__.__name__}.size_of_value() not implemented')

        return self.size


class StructField(Field):
    """
    Simplest of the fields: mimic the behaviour of the struct module decoding/encoding
    numbers to/from bytes.
    """

    def __init__(self, format, endianess=Endianess.LITTLE_ENDIAN):
        super().__init__()
        self.format = format
        self.endianess = endianess
        self.size = struct.calcsize(self.get_format())

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, self.get_format())

    def get_format(self):
        return '%s%s' % ('<' if self.endianess == Endianess.LITTLE_ENDIAN else '>', self.format)

    def decode(self, buffer, offset=0, ctx=None):
        raw = read(buffer, offset, self.size)
        return struct.unpack(self.get_format(), raw)[0]

    def encode(self, value, ctx, offset):
        try:
            raw = struct.pack(self.get_format(), value)
        except (struct.error, OverflowError) as e:
            raise EncodeException(f'cannot encode {value!r} as {self.get_format()!r}: {e}')

        write(ctx, offset, raw)


class CharField(Field):
    '''A single character stored in one byte.'''

    size = 1

    def __init__(self, encoding='latin-1'):
        super().__init__()
        self.encoding = encoding

    def decode(self, buffer, offset=0, ctx=None):
        raw = read(buffer, offset, 1)
        try:
            return raw.decode(self.encoding)
        except UnicodeDecodeError as e:
            raise DecodeException(str(e))

    def encode(self, value, ctx, offset):
        if not isinstance(value, str):
            raise EncodeException(f'{value!r} is not a character')

        try:
            raw = value.encode(self.encoding)
        except UnicodeEncodeError as e:
            raise EncodeException(str(e))

        if len(raw) != 1:
            raise EncodeException(f'{value!r} does not fit in a single byte')

        write(ctx, offset, raw)


class StringField(Field):
    """Text stored in a fixed number of bytes.

    The NUL bytes are removed when decoding and used as padding when encoding,
    so a string with embedded NULs doesn't survive a round-trip."""

    def __init__(self, length, encoding='ascii', errors='strict'):
        super().__init__()
        self.size = length
        self.encoding = encoding
        self.errors = errors

    def __repr__(self):
        return '<%s(%d, %s)>' % (self.__class__.__name__, self.size, self.encoding)

    def decode(self, buffer, offset=0, ctx=None):
        raw = read(buffer, offset, self.size)
        try:
            return raw.decode(self.encoding, self.errors).replace('\0', '')
        except UnicodeDecodeError as e:
            raise DecodeException(str(e))

    def encode(self, value, ctx, offset):
        try:
            raw = value.encode(self.encoding, self.errors)
        except (AttributeError, UnicodeEncodeError) as e:
            raise EncodeException(f'cannot encode {value!r} as {self.encoding}: {e}')

        if len(raw) > self.size:
            raise EncodeException(f'{value!r} is longer than {self.size} bytes')

        write(ctx, offset, raw.ljust(self.size, b'\0'))


class NullTerminatedStringField(Field):
    '''Text ended by a NUL byte. It can't be a member of a Schema, only the
    target of a reference or the element of an array of references.'''

    def __init__(self, encoding='ascii'):
        super().__init__()
        self.encoding = encoding

    def __repr__(self):
        return '<%s(%s)>' % (self.__class__.__name__, self.encoding)

    def _to_bytes(self, value) -> bytes:
        try:
            raw = value.encode(self.encoding)
        except (AttributeError, UnicodeEncodeError) as e:
            raise EncodeException(f'cannot encode {value!r} as {self.encoding}: {e}')

        if b'\0' in raw:
            raise EncodeException(f'{value!r} contains a NUL byte')

        return raw

    def decode(self, buffer, offset=0, ctx=None):
        if offset < 0 or offset >= len(buffer):
            raise DecodeException(f'string at offset 0x{offset:x} is outside the buffer')

        tail = bytes(buffer[offset:])
        length = tail.find(b'\0')

        if length < 0:
            raise DecodeException(f'string at offset 0x{offset:x} is not terminated')

        # the terminator is part of the read area
        if ctx is not None:
            ctx.mark_read(offset, length + 1)

        try:
            return tail[:length].decode(self.encoding)
        except UnicodeDecodeError as e:
            raise DecodeException(str(e))

    def encode(self, value, ctx, offset):
        write(ctx, offset, self._to_bytes(value) + b'\0')

    def size_of_value(self, value) -> int:
        return len(self._to_bytes(value)) + 1


class SkipField(Field):
    '''Bytes to ignore: the value is always None.'''

    def __init__(self, length):
        super().__init__()
        self.length = length

    def __repr__(self):
        return '<%s(%d)>' % (self.__class__.__name__, self.length)

    def decode(self, buffer, offset=0, ctx=None):
        read(buffer, offset, self.length)
        return None

    def encode(self, value, ctx, offset):
        write(ctx, offset, b'\0' * self.length)

    def size_of_value(self, value) -> int:
        return self.length


INT       = StructField('i')
INT_BE    = StructField('i', endianess=Endianess.BIG_ENDIAN)
UINT      = StructField('I')
UINT_BE   = StructField('I', endianess=Endianess.BIG_ENDIAN)
SHORT     = StructField('h')
SHORT_BE  = StructField('h', endianess=Endianess.BIG_ENDIAN)
USHORT    = StructField('H')
USHORT_BE = StructField('H', endianess=Endianess.BIG_ENDIAN)
FLOAT     = StructField('f')
FLOAT_BE  = StructField('f', endianess=Endianess.BIG_ENDIAN)
BYTE      = StructField('B')
CHAR      = CharField()
