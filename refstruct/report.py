'''
Diagnostics about a decoded buffer: which bytes were read and which
arrays overlap each other.
'''
import logging
from typing import List, Optional, Tuple

from bitstring import BitArray

from .context import Diagnostic


logger = logging.getLogger(__name__)


def _is_nested(path: str, prefix: str) -> bool:
    '''"root.rows[0].cells" is nested into "root.rows", "root.data_ext" is not into "root.data".'''
    if not path.startswith(prefix):
        return False

    return len(path) == len(prefix) or path[len(prefix)] in '.['


def check_overlaps(arrays) -> List[Diagnostic]:
    '''Each couple of arrays sharing some bytes is an error, unless they start at
    the same offset (the same data seen twice) or one is nested into the
    other (multidimensional arrays): this last check gives false negatives.'''
    errors = []
    for idx, a1 in enumerate(arrays):
        for a2 in arrays[idx + 1:]:
            if a1.length == 0 or a2.length == 0:
                continue

            if a1.start == a2.start:
                continue

            if _is_nested(a1.path, a2.path) or _is_nested(a2.path, a1.path):
                continue

            if a1.start < a2.start + a2.length and a2.start < a1.start + a1.length:
                diagnostic = Diagnostic(f'{a1.path}/{a2.path}', f'Array {a1.name} overlaps with {a2.name}')
                logger.warning('%s: %s', diagnostic.path, diagnostic.message)
                errors.append(diagnostic)

    return errors


class Report(object):
    '''Result of Schema.report(): the decoded data together with the errors
    found and, if requested, the usage of the buffer.'''

    def __init__(self, ctx, data):
        self.data = data
        self.buffer = ctx.buffer
        self.arrays = ctx.arrays
        self._usage = ctx.usage
        self.overlap_errors = check_overlaps(ctx.arrays)
        self.errors = ctx.errors + self.overlap_errors

    def __repr__(self):
        return f'<{self.__class__.__name__}(errors={len(self.errors)}, usage={self.usage()})>'

    def __str__(self):
        out = '\n===Report==='
        out += f'\n Buffer size: {len(self.buffer)}'

        usage = self.usage()
        if usage is not None:
            percentage = (usage * 100) // len(self.buffer) if len(self.buffer) else 100
            out += f'\n Bytes read: {usage} ({percentage}%)'

        out += f'\n Number of arrays: {len(self.arrays)}'

        if self.errors:
            out += f'\n Errors ({len(self.errors)}):\n  '
            out += '\n  '.join(f'{error.path}: {error.message}' for error in self.errors)
        else:
            out += '\n No errors were found.'

        return out

    def usage(self) -> Optional[int]:
        '''Returns the number of bytes read at least once, None if the usage
        was not monitored.'''
        if self._usage is None:
            return None

        return len(self._usage) - self._usage.count(0)

    @property
    def coverage(self) -> Optional[BitArray]:
        '''One bit for each byte of the buffer, set if the byte was read.'''
        if self._usage is None:
            return None

        bits = BitArray(length=len(self._usage))
        read = [idx for idx, count in enumerate(self._usage) if count]
        if read:
            bits.set(True, read)

        return bits

    def unread_ranges(self) -> List[Tuple[int, int]]:
        '''The [start, end) intervals of bytes never read.'''
        coverage = self.coverage
        if coverage is None:
            return []

        ranges = []
        start = None
        for idx, is_read in enumerate(coverage):
            if not is_read and start is None:
                start = idx
            elif is_read and start is not None:
                ranges.append((start, idx))
                start = None

        if start is not None:
            ranges.append((start, len(coverage)))

        return ranges
