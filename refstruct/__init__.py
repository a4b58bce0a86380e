"""
# Refstruct: C-like structs with pointers.

We can describe a struct as a list of members laid out contiguously plus
some data living elsewhere in the buffer and reached through the value of a
member, like a pointer in C:

 1. arrays: their offset and their number of elements are found in members
 2. references: a single value, its offset is found in a member

Two main operations are defined for a struct:

 1. decode(): take the binary data and build a dictionary with a key for each
    member, array, reference and static of the struct.

 2. encode(): build the binary data from a dictionary, allocating the space
    for the arrays and the references after the struct and updating the
    members containing their offsets and counts.

to these we add one more

 3. report(): decode, keeping track of which bytes were read, which arrays
    overlap and which rules are not satisfied.

"""
from .core import Schema
from .context import DecodeContext, EncodeContext, Diagnostic
from .report import Report
from .exceptions import (
    RefstructException,
    SchemaException,
    DecodeException,
    EncodeException,
)
from . import fields, rules


__all__ = [
    'Schema',
    'DecodeContext',
    'EncodeContext',
    'Diagnostic',
    'Report',
    'RefstructException',
    'SchemaException',
    'DecodeException',
    'EncodeException',
    'fields',
    'rules',
]
