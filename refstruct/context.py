'''
State of a single decode()/encode() call.

A context is created for each top-level call and threaded through the
whole recursive traversal; it is never shared between calls.
'''
import logging
from collections import namedtuple
from contextlib import contextmanager


logger = logging.getLogger(__name__)

Diagnostic = namedtuple('Diagnostic', ['path', 'message'])

ArrayRecord = namedtuple('ArrayRecord', ['name', 'start', 'count', 'length', 'path'])


class Context(object):
    '''Path stack and diagnostics shared by decoding and encoding.

    The path mirrors the nesting of the schemas, like "root.header.entries[3].name".'''

    def __init__(self):
        self.errors = []
        self._path = ['root']

    @property
    def path(self) -> str:
        return ''.join(self._path)

    @contextmanager
    def enter(self, component: str):
        self._path.append(component)
        try:
            yield self
        finally:
            self._path.pop()

    def add_error(self, message: str, path=None) -> None:
        diagnostic = Diagnostic(self.path if path is None else path, message)
        logger.warning('%s: %s', diagnostic.path, diagnostic.message)
        self.errors.append(diagnostic)


class DecodeContext(Context):

    def __init__(self, buffer, monitor_usage=False, hide_pointer_fields=False):
        super().__init__()
        view = memoryview(buffer)
        if view.format != 'B' or view.ndim != 1:
            view = view.cast('B')

        self.buffer = view.toreadonly()
        self.hide_pointer_fields = hide_pointer_fields
        # one saturating counter for each byte of the buffer
        self.usage = bytearray(len(self.buffer)) if monitor_usage else None
        self.arrays = []
        # (absolute offset, type) -> value already decoded
        self.cache = {}

    def mark_read(self, start: int, length: int) -> None:
        if self.usage is None:
            return

        end = min(start + length, len(self.usage))
        start = max(start, 0)
        if end <= start:
            return

        self.usage[start:end] = bytes(count + 1 if count < 255 else 255 for count in self.usage[start:end])

    def register_array(self, name: str, start: int, count: int, length: int) -> None:
        self.arrays.append(ArrayRecord(name, start, count, length, self.path))


class EncodeContext(Context):
    '''The buffer is allocated in advance, the space for arrays and references
    is then handed out by a bump allocator: no region is ever reused.

    Without a size the context only measures: nothing is written and at the
    end "end" is the size needed for the buffer.'''

    def __init__(self, size=None):
        super().__init__()
        self.buffer = bytearray(size) if size is not None else None
        self.allocation_point = 0
        self.end = 0
        # id() of an already placed dict -> its address
        self.allocations = {}

    @property
    def measuring(self) -> bool:
        return self.buffer is None

    def add_error(self, message: str, path=None) -> None:
        if self.measuring:
            # the writing pass is going to find the same errors
            self.errors.append(Diagnostic(self.path if path is None else path, message))
            return

        super().add_error(message, path=path)

    def allocate(self, size: int) -> int:
        position = self.allocation_point
        self.allocation_point += size
        self.end = max(self.end, self.allocation_point)
        return position

    def claim(self, start: int, size: int) -> None:
        '''Account for a region placed at a fixed address, the next allocations
        start after it.'''
        self.allocation_point = max(self.allocation_point, start + size)
        self.end = max(self.end, self.allocation_point)
