import struct

import pytest
from bitstring import BitArray, pack

from refstruct import Schema, fields


class RGB565(fields.Field):
    '''A pixel color packed into a little endian 16 bits integer.'''

    size = 2

    def decode(self, buffer, offset=0, ctx=None):
        # reverse the bytes so that the bits are in the order of the integer
        bits = BitArray(bytes=fields.read(buffer, offset, 2)[::-1])
        return {
            'r': bits[0:5].uint,
            'g': bits[5:11].uint,
            'b': bits[11:16].uint,
        }

    def encode(self, value, ctx, offset):
        bits = pack('uint:5, uint:6, uint:5', value['r'], value['g'], value['b'])
        fields.write(ctx, offset, bits.bytes[::-1])


@pytest.fixture
def image_schema():
    dimensions = Schema('Dimensions')\
        .add_member(fields.INT, 'width')\
        .add_member(fields.INT, 'height')

    pixel = Schema('Pixel')\
        .add_member(RGB565(), 'color')\
        .add_member(fields.BYTE, 'alpha')

    return Schema('Image')\
        .add_member(fields.INT, 'magicNumber')\
        .add_member(dimensions, 'size')\
        .add_member(fields.INT, 'pixelOffset')\
        .add_member(fields.INT, 'pixelNumber')\
        .add_member(fields.INT, 'nameIndex')\
        .add_member(fields.StringField(8), 'reserved')\
        .add_reference(fields.NullTerminatedStringField(), 'name', 'nameIndex')\
        .add_array(pixel, 'pixels', 'pixelNumber', 'pixelOffset')


@pytest.fixture
def image_buffer():
    data = bytearray(85)
    struct.pack_into('<iiiiii', data, 0, 0x24011999, 4, 4, 32, 16, 80)
    for idx in range(32, 80):
        data[idx] = (idx * 9) % 255
    data[80:84] = b'Tina'

    return bytes(data)
