#!/usr/bin/env python3
# -*- coding: utf-8 -*-

"""srtadjust - utility to fix the timing and position of SubRip subtitles

# Copyright (C) 2010  Marco Chieppa (aka crap0101)
# This program is free software; you can redistribute it and/or modify
# it under the terms of the GNU General Public License as published by
# the Free Software Foundation; either version 3 of the License, or
# (at your option) any later version.
# This program is distributed in the hope that it will be useful,
# but WITHOUT ANY WARRANTY; without even the implied warranty of
# MERCHANTABILITY or FITNESS FOR A PARTICULAR PURPOSE.  See the
# GNU General Public License for more details.
# You should have received a copy of the GNU General Public License
# along with this program; if not see <http://www.gnu.org/licenses/>
# or write to the Free Software Foundation, Inc.,
# 59 Temple Place - Suite 330, Boston, MA 02111-1307, USA.

Use this program to fix the time offset or time scale of subtitles that
were meant for a different cut or a different playback speed.
The file is modified in place; the original is kept as FILE.bak

Requirements:
  - Python >= 3.7
  - ffmpeg (only for --extract)

Supported formats:
  - SubRip (*.srt), including the X1/X2/Y1/Y2 pixel position extension.

Times are given as [[hh:]mm:]ss[,ms], a decimal number of seconds,
or a mix like 1:30.4 ; time ranges as START-END, where each end
may be omitted (10-20, -1:00.5, 300-, -).

Examples:
  # shift everything 2.5 seconds later, renumbering the subtitles:
  ~$ srtadjust --offset 2.5 -r film.srt
  # subtitles at 1:00 should be at 1:03.2, from 10 minutes on only:
  ~$ srtadjust --from 1:00 --to 1:03.2 --offset-start 10:00 film.srt
  # fix PAL/NTSC speed drift, keeping 5 minutes in as the sync point:
  ~$ srtadjust --subs-are-fast --scale-pivot 5:00 film.srt
  # move the first minute of subtitles to the top of the screen:
  ~$ srtadjust --to-top=-1:00 film.srt
  # get a .srt from a video file (needs ffmpeg):
  ~$ srtadjust -e film.mkv
"""

VERSION = '1.0_20261019'

#################
# I M P O R T S #
#################

import io
import os
import re
import sys
import math
import codecs
import logging
import argparse
import warnings
import itertools
import subprocess
import collections

#####################
# C O N S T A N T S #
#####################

logger = logging.getLogger('srtadjust')

PAL = 25.0
NTSC = 23.976

MAX_H = 3600
MAX_MIN = 60
MAX_MS = 1000

# open ends of a time range
TIMESTAMP_MIN = -2 ** 63
TIMESTAMP_MAX = 2 ** 63 - 1

TIME_SEP = ' --> '
TOP_TAG = '{\\an8}'
BACKUP_SUFFIX = '.bak'

RE_MATCH_NUMBER = re.compile(r'^[-+]?\d+\Z', re.ASCII)

RE_MATCH_TIMESTAMP = re.compile(r'''
    ^\s*
    (?P<sign>-)?
    (?:
        (?:(?:(?P<hours>\d+):)?(?P<minutes>\d+):)?
        (?P<seconds>\d+)
        (?:[,.](?P<frac>\d+))?
    |
        \.(?P<only_frac>\d+)
    )
    \s*\Z''', re.VERBOSE | re.ASCII)

# same grammar as above, without groups and surrounding blanks
_TIMESTAMP_EXPR = r'-?(?:(?:(?:\d+:)?\d+:)?\d+(?:[,.]\d+)?|\.\d+)'

RE_MATCH_TIMESPAN = re.compile(
    r'^(?P<start>{0})?-(?P<end>{0})?\Z'.format(_TIMESTAMP_EXPR), re.ASCII)

# 00:00:08,614 --> 00:00:10,373
# 00:00:08,614 --> 00:00:10,373  X1:201 X2:516 Y1:397 Y2:423
RE_MATCH_TIME_LINE = re.compile(r'''
    ^(?P<start>.*?)\ -->\ \s*(?P<end>\S(?:.*?\S)?)
    (?:\s{2,}
        X1:(?P<x1>-?\d+)\ X2:(?P<x2>-?\d+)\ Y1:(?P<y1>-?\d+)\ Y2:(?P<y2>-?\d+)
    )?
    \s*\Z''', re.VERBOSE | re.ASCII)

RE_POSITION_TAG = re.compile(r'^\{\\an\d+\}', re.ASCII)

# codec to decode the bytes following each BOM
BOM_ENCODINGS = (
    (codecs.BOM_UTF8, 'utf-8'),
    (codecs.BOM_UTF16_LE, 'utf-16-le'),
    (codecs.BOM_UTF16_BE, 'utf-16-be'),
)

#####################
# F U N C T I O N S #
#####################

def parse_decimal_part(digits):
    """
    Return the milliseconds of the decimal fraction written as *digits*
    after the separator, so '050' (0.050 s) is 50 and '5' is 500.
    Precision past the third decimal is truncated, not rounded.
    """
    return int(digits[:3].ljust(3, '0'))


def parse_timestamp(string_time):
    """
    Parse [-][[hh:]mm:]ss[,ms] (or [-]ss.ms, or [-].ms) and return
    the signed number of milliseconds. Comma or period is okay.
    Raise TimestampSyntaxError on malformed times.
    """
    matched = RE_MATCH_TIMESTAMP.match(string_time)
    if matched is None:
        raise TimestampSyntaxError(string_time)
    sign = -1 if matched.group('sign') else 1
    if matched.group('only_frac') is not None:
        return sign * parse_decimal_part(matched.group('only_frac'))
    try:
        hours, minutes, seconds = (int(matched.group(name) or 0)
                                   for name in ('hours', 'minutes', 'seconds'))
    except ValueError as err:
        # too many digits for int()
        raise TimestampSyntaxError(string_time, str(err)) from err
    ms = parse_decimal_part(matched.group('frac') or '')
    # this blocks "1:90" but allows "90"
    if minutes > MAX_MIN or (seconds > MAX_MIN
                             and matched.group('minutes') is not None):
        raise TimestampSyntaxError(string_time,
                                   'Invalid minutes or seconds value')
    return sign * (ms + MAX_MS * (seconds + MAX_MIN * (minutes
                                                       + MAX_MIN * hours)))


def parse_timespan(string_span):
    """
    Parse time ranges like a-b, a-, -b or -, where a and b are
    timestamps (negative ones too, so '-1--0.5' is -1s to -0.5s).
    A missing end is open, using TIMESTAMP_MIN or TIMESTAMP_MAX.
    """
    matched = RE_MATCH_TIMESPAN.match(string_span)
    if matched is None:
        raise TimestampSyntaxError(string_span, 'Malformed timespan')
    start, end = matched.group('start', 'end')
    start_ms = TIMESTAMP_MIN if start is None else parse_timestamp(start)
    end_ms = TIMESTAMP_MAX if end is None else parse_timestamp(end)
    if start_ms >= end_ms:
        raise TimespanRangeError(string_span)
    return TimeSpan(start_ms, end_ms)


def times_from_secs(total_sec):
    """
    Returns a tuple of (hour, minutes, secs)
    from a time expressed in seconds.
    """
    hour, m = divmod(total_sec, MAX_H)
    return hour, m // MAX_MIN, total_sec % MAX_MIN


def format_timestamp(ms):
    """Format *ms* milliseconds as [-]hh:mm:ss,mmm"""
    sign, ms = ('-', -ms) if ms < 0 else ('', ms)
    secs, ms = divmod(ms, MAX_MS)
    return '%s%02d:%02d:%02d,%03d' % ((sign,) + times_from_secs(secs) + (ms,))


def argtype(function):
    """
    Decorator for the option's type functions, turning the
    BadFormatError they raise into argparse's errors.
    """
    def _argtype(string):
        try:
            return function(string)
        except BadFormatError as err:
            raise argparse.ArgumentTypeError(str(err))
    _argtype.__name__ = function.__name__
    return _argtype


def parse_lines(lines, warn=False):
    """Return the SrtDocument read from *lines*."""
    return SrtSub(lines, warn=warn).parse()


def parse_text(text, warn=False):
    """Return the SrtDocument read from the *text* string."""
    return parse_lines(io.StringIO(text, newline='\n'), warn)


def detect_encoding(raw, default='utf-8'):
    """
    Return a (encoding, bom) pair for the *raw* bytes: the codec
    marked by a BOM and the BOM itself if any, else (*default*, b'').
    """
    for bom, encoding in BOM_ENCODINGS:
        if raw.startswith(bom):
            return encoding, bom
    return default, b''


def read_lines(path, encoding='utf-8', errors='strict'):
    """
    Read the file at *path*, returning a list of its lines (each
    with its own terminator, BOM removed), the encoding used and
    the BOM found (b'' if none) to write the file back the same.
    """
    logger.info('Opening input file: %r', path)
    with open(path, 'rb') as stream:
        raw = stream.read()
    encoding, bom = detect_encoding(raw, encoding)
    text = raw[len(bom):].decode(encoding, errors)
    return list(io.StringIO(text, newline='\n')), encoding, bom


def write_to_disk(text, path, encoding='utf-8', errors='strict', bom=b''):
    """
    Write *text* as it is (line endings included) to *path*,
    preceded by the *bom* bytes.
    """
    logger.info('Writing modified subtitle to disk: %r', path)
    with open(path, 'wb') as out:
        out.write(bom + text.encode(encoding, errors))


def save_on_error(backup):
    """Put the original file back in place, if it was moved aside."""
    if backup is not None and backup.made:
        backup.restore()


def extract_subtitles(path, executables=('ffmpeg', 'ffmpeg.exe')):
    """
    Extract subtitles to .srt from a video file or another subtitle
    format, using ffmpeg. Return the path of the new file.
    """
    output = os.path.splitext(path)[0] + '.srt'
    if os.path.abspath(output) == os.path.abspath(path):
        raise ExtractError('%r is already a .srt file' % path)
    for executable in executables:
        logger.info('Extracting %r with %s', path, executable)
        try:
            retcode = subprocess.call(
                [executable, '-i', path, '-loglevel', 'quiet', output])
        except FileNotFoundError as err:
            logger.info('Will try to continue after error: %s', err)
            continue
        if retcode != 0:
            raise ExtractError('%s exited with status %d' % (executable,
                                                              retcode))
        return output
    raise ExtractError('Cannot extract subtitles: could not find %s.'
                       % ' or '.join('`%s`' % e for e in executables))


def resolve_options(opts):
    """
    Check the (raw) command line options *opts* and return the
    non ambiguous AdjustConfig they describe.
    Raise OptionsError for invalid paths or option combinations.
    """
    path = opts.infile
    if not path:
        raise OptionsError('an input file is required')
    if not os.path.exists(path):
        raise OptionsError('Input path does not exist: %r' % path)
    if os.path.islink(path):
        raise OptionsError('Will not modify a symlink: %r' % path)

    if (opts.from_time is None) != (opts.to_time is None):
        raise OptionsError(
            'The --from and --to arguments must be used together.')
    if opts.from_time is not None and opts.offset is not None:
        raise OptionsError(
            "The --from/--to arguments can't be used with --offset.")
    if sum(map(bool, (opts.subs_are_fast, opts.subs_are_slow,
                      opts.scale is not None, opts.extract))) > 1:
        raise OptionsError('Only one of the --extract, --scale, '
                           '--subs-are-fast, and --subs-are-slow '
                           'options are allowed.')

    scale = opts.scale
    if opts.subs_are_fast:
        scale = PAL / NTSC
    elif opts.subs_are_slow:
        scale = NTSC / PAL
    if scale is not None and not math.isfinite(scale):
        raise OptionsError('Invalid scale: %r' % scale)

    offset = opts.offset
    if opts.from_time is not None:
        offset = opts.to_time - opts.from_time

    if opts.offset_start is not None and scale is not None:
        raise OptionsError('Cannot both scale and set an offset start, '
                           'because the meaning is unclear.')
    if offset is not None and scale is not None:
        raise OptionsError(
            'Cannot both scale and offset together, because mistakes are '
            'too likely. Instead, first sync the subtitles at a point in '
            'time then use --scale and --scale-pivot together.')
    if opts.scale_pivot is not None and scale is None:
        raise OptionsError(
            'Cannot use a scale pivot without some type of time scaling.')

    to_top = tuple(opts.to_top or ())
    to_bottom = tuple(opts.to_bottom or ())
    if (offset is None and scale is None and not opts.renumber
            and not to_top and not to_bottom and not opts.extract):
        raise OptionsError(
            '--extract or one of the offset options, the scale options, '
            '--renumber, --to-top or --to-bottom must be used.')

    for top in to_top:
        for bottom in to_bottom:
            if (top.contains(bottom.start_ms) or top.contains(bottom.end_ms)
                    or bottom.contains(top.start_ms)
                    or bottom.contains(top.end_ms)):
                raise OptionsError(
                    'The times to move subtitles to the top and to the '
                    "bottom overlap; can't do both at the same time.")

    if opts.extract and (opts.renumber or scale is not None
                         or opts.scale_pivot is not None
                         or offset is not None
                         or opts.offset_start is not None
                         or to_top or to_bottom):
        raise OptionsError(
            'Cannot combine --extract with other options or operations.')

    return AdjustConfig(
        scale=scale,
        scale_pivot=opts.scale_pivot,
        offset_ms=offset or 0,
        offset_start_ms=(TIMESTAMP_MIN if opts.offset_start is None
                         else opts.offset_start),
        renumber=opts.renumber,
        to_top=to_top,
        to_bottom=to_bottom,
        extract=opts.extract)


def setup_logging(verbose=False):
    """Log plain messages to stderr, INFO ones too if *verbose*."""
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('%(message)s'))
        logger.addHandler(handler)
    logger.setLevel(logging.INFO if verbose else logging.WARNING)


def get_parser():
    """Return an argparse's parser object."""
    parser = argparse.ArgumentParser(
        prog='srtadjust',
        description='Adjust subtitle timing or positions in SRT files.',
        epilog='Negative times must be attached to their option, as in '
        '--offset=-1:30 or --to-top=-2:00.')
    parser.add_argument("--info", dest="info", action="store_true",
                        help="print informations about the program and exit.")
    parser.add_argument('--version', action='version',
                        version='srtadjust %s' % VERSION)
    parser.add_argument("infile", nargs='?', metavar="INPUT",
                        help="input file in the SubRip (.srt) format.")
    timestamp = argtype(parse_timestamp)
    timespan = argtype(parse_timespan)
    # offset options
    o_parser = parser.add_argument_group('Offset Options')
    o_parser.add_argument("-o", "--offset", dest="offset", type=timestamp,
                          metavar="TIME", help="how much should the "
                          "subtitles be shifted forward? Negative values "
                          "will shift the subtitles backward.")
    o_parser.add_argument("-f", "--from", dest="from_time", type=timestamp,
                          metavar="TIME", help="--from and --to can be used"
                          " together to create an offset, instead of "
                          "--offset.")
    o_parser.add_argument("-t", "--to", dest="to_time", type=timestamp,
                          metavar="TIME", help="see --from.")
    o_parser.add_argument("-s", "--offset-start", dest="offset_start",
                          type=timestamp, metavar="TIME",
                          help="at what timestamp should subtitles start to "
                          "be adjusted? Adjustment will occur from this "
                          "point to the end.")
    # scale options
    s_parser = parser.add_argument_group('Scale Options')
    s_parser.add_argument("--scale", dest="scale", type=float,
                          metavar="FACTOR", help="scale the subtitle speed "
                          "slower (<1) or faster (>1).")
    s_parser.add_argument("--scale-pivot", dest="scale_pivot",
                          type=timestamp, metavar="TIME",
                          help="the time that's assumed to be perfectly "
                          "matched already when scaling (default: 0).")
    s_parser.add_argument("--subs-are-slow", dest="subs_are_slow",
                          action="store_true", help="use if the subtitles "
                          "are continually lagging more and more behind "
                          "(NTSC subtitles on a PAL video).")
    s_parser.add_argument("--subs-are-fast", dest="subs_are_fast",
                          action="store_true", help="use if the subtitles "
                          "are continually jumping further and further "
                          "ahead (PAL subtitles on a NTSC video).")
    # position options
    p_parser = parser.add_argument_group('Position Options')
    p_parser.add_argument("--to-top", dest="to_top", action="append",
                          type=timespan, metavar="START-END",
                          help="move subtitles in this time range (before "
                          "any timing adjustment) to the top of the screen."
                          " Can't be used on subtitles with pixel-based "
                          "positions. May be repeated.")
    p_parser.add_argument("--to-bottom", dest="to_bottom", action="append",
                          type=timespan, metavar="START-END",
                          help="move subtitles in this time range (before "
                          "any timing adjustment) to the bottom of the "
                          "screen, removing position tags and pixel-based "
                          "positions. May be repeated.")
    # other options
    m_parser = parser.add_argument_group('Misc Options')
    m_parser.add_argument("-r", "--renumber", dest="renumber",
                          action="store_true", help="rewrite the subtitles"
                          " numbers, counting from 1.")
    m_parser.add_argument("-e", "--extract", dest="extract",
                          action="store_true", help="use ffmpeg to extract "
                          ".srt subtitles from a video or other subtitle "
                          "file format, instead of adjusting INPUT.")
    m_parser.add_argument("--encoding", dest="encoding", metavar="NAME",
                          default='utf-8', help="encoding of INPUT when it "
                          "has no byte order mark (default: utf-8). The "
                          "file is written back in the same encoding.")
    m_parser.add_argument("--encode-error", dest='enc_err',
                          default='strict', metavar="NAME",
                          choices=('strict', 'replace', 'ignore'),
                          help="how encoding and decoding errors are "
                          "handled: 'strict' raises an error, 'ignore' "
                          "drops the malformed data and 'replace' puts a "
                          "replacement marker in its place (default: "
                          "strict).")
    m_parser.add_argument("-w", "--warn", action="store_true",
                          dest="is_warn", help="enable warnings.")
    m_parser.add_argument("-v", "--verbose", action="store_true",
                          dest="verbose", help="tell what's being done.")
    return parser

#################
# C L A S S E S #
#################

class AdjustError (Exception):
    """Base class for srtadjust errors."""
    def __init__ (self, message):
        super().__init__(message)
        self.message = message

    def __str__ (self):
        return self.message


class BadFormatError (AdjustError):
    """Base class for formatting errors."""
    pass


class TimestampSyntaxError (BadFormatError):
    """Raised when a malformed time (or time range) is found."""
    def __init__ (self, string_time,
                  reason="Cannot coerce value into timestamp"):
        super().__init__('%s: %r' % (reason, string_time))
        self.string_time = string_time


class TimespanRangeError (BadFormatError):
    """Raised when a time range doesn't end after its start."""
    def __init__ (self, string_span):
        super().__init__(
            'Timespan end must come after the start: %r' % string_span)
        self.string_span = string_span


class SubtitleParseError (BadFormatError):
    """Raised when a subtitle block is malformed or incomplete."""
    def __init__ (self, message, numline=None, line=None):
        super().__init__(message)
        self.numline = numline
        self.line = line

    def __str__ (self):
        if self.numline is None:
            return self.message
        return "[at line %d] %s: %r" % (self.numline, self.message, self.line)


class PositionOverrideConflictError (AdjustError):
    """Raised moving to the top a block with a hard coded position."""
    def __init__ (self, block):
        super().__init__(
            'Cannot override subtitle position information of subtitle %d '
            'at %s because it has hard coded position.'
            % (block.number, format_timestamp(block.time_span.start_ms)))
        self.block = block


class OptionsError (AdjustError):
    """Raised for invalid option combinations."""
    pass


class ExtractError (AdjustError):
    """Raised when subtitles can't be extracted with ffmpeg."""
    pass


class TimeOverflowError (AdjustError):
    """Raised when a time is too large to be scaled."""
    def __init__ (self, ms):
        super().__init__("Time too large to be scaled: %d ms" % ms)
        self.ms = ms


class IncompleteBlockWarning (Warning):
    """Warned for incomplete block at the EOF (e.g. no blank line)."""
    pass


AdjustConfig = collections.namedtuple(
    'AdjustConfig',
    'scale scale_pivot offset_ms offset_start_ms renumber '
    'to_top to_bottom extract',
    defaults=(None, None, 0, TIMESTAMP_MIN, False, (), (), False))
AdjustConfig.__doc__ = """\
Non ambiguous version of the program options, as given by
resolve_options(). Legal combinations only: the adjuster doesn't check."""


class TimeSpan (collections.namedtuple('TimeSpan', 'start_ms end_ms')):
    """A time interval in milliseconds."""
    __slots__ = ()

    def contains (self, ms):
        """Check whether a time is within this interval (ends included)."""
        return self.start_ms <= ms <= self.end_ms

    def __str__ (self):
        return TIME_SEP.join((format_timestamp(self.start_ms),
                              format_timestamp(self.end_ms)))


class Position (collections.namedtuple('Position', 'x1 x2 y1 y2')):
    """
    Hard coded pixel-based position (left, right, up, down) of a
    subtitle. It's not well documented and may depend on the video
    resolution; tags like {\\an8} work better, but those are stored
    in the text.
    """
    __slots__ = ()

    def __str__ (self):
        return 'X1:%d X2:%d Y1:%d Y2:%d' % self


class SrtBlock:
    """A subtitle: number, time span, position and text lines."""
    def __init__ (self, number, time_span, position=None, lines=None):
        self.number = number
        self.time_span = time_span
        self.position = position
        self.lines = [] if lines is None else lines

    def __eq__ (self, other):
        if not isinstance(other, SrtBlock):
            return NotImplemented
        return ((self.number, self.time_span, self.position, self.lines)
                == (other.number, other.time_span, other.position,
                    other.lines))

    def __repr__ (self):
        return '%s(%r, %r, %r, %r)' % (self.__class__.__name__, self.number,
                                       self.time_span, self.position,
                                       self.lines)

    def format (self, line_ending='\n'):
        """Return the block as text, blank separator line included."""
        time_line = str(self.time_span)
        if self.position is not None:
            time_line = '%s  %s' % (time_line, self.position)
        return ''.join(itertools.chain(
            ('%d' % self.number, line_ending, time_line, line_ending),
            self.lines, (line_ending,)))


class SrtDocument:
    """
    The blocks of a SubRip file and its line terminator, '\\n' or
    '\\r\\n' (mixed ones aren't supported).
    """
    def __init__ (self, blocks=None, line_ending='\n'):
        self.blocks = [] if blocks is None else blocks
        self.line_ending = line_ending

    def format (self):
        return ''.join(block.format(self.line_ending)
                       for block in self.blocks)

    __str__ = format


class GetFunc:
    """
    Help class to iterate over the line's check methods: switch to
    the next one when the current one returns a true value.
    """
    def __init__ (self, cycle):
        self.cycle = cycle
        self.function = next(cycle)

    def __call__ (self, *args, **kwords):
        change = self.function(*args, **kwords)
        if change:
            self.function = next(self.cycle)
        return change


class SrtSub:
    """
    Class to manage SubRip (*.srt) subtitle: read the lines of
    *file_in* into a SrtDocument, write documents on *file_out*.
    """
    def __init__ (self, file_in=None, file_out=None, warn=False):
        """file_in can be any iterable of lines, file_out a file-like."""
        self.file_in = file_in
        self.file_out = file_out
        self.IS_WARN = warn
        self.actual_numline = 0
        self.document = None
        self.clear_block()

    def clear_block (self):
        self.number = self.time_span = self.position = self.lines = None

    def make_iter_blocks (self, *methods):
        """Returns an itertools.cycle object for *methods."""
        return itertools.cycle(methods)

    def new_sub_num (self, num_str):
        """
        Check the subtitle's number and return it
        or raise SubtitleParseError.
        """
        matched = RE_MATCH_NUMBER.match(num_str.strip())
        if matched is None:
            raise SubtitleParseError('Was expecting a subtitle number',
                                     self.actual_numline, num_str)
        try:
            return int(matched.group(0))
        except ValueError as err:
            raise SubtitleParseError(str(err), self.actual_numline,
                                     num_str) from err

    def match_time (self, string_time):
        """
        Check the time-line and return a (TimeSpan, Position) tuple
        (Position is None if missing) or raise SubtitleParseError.
        Negative times aren't standard, but they're accepted so that
        subtitles moved back too far don't lose their timing data.
        """
        matched = RE_MATCH_TIME_LINE.match(string_time)
        if matched is None:
            raise SubtitleParseError('Expecting time --> time',
                                     self.actual_numline, string_time)
        try:
            time_span = TimeSpan(parse_timestamp(matched.group('start')),
                                 parse_timestamp(matched.group('end')))
        except TimestampSyntaxError as err:
            raise SubtitleParseError(str(err), self.actual_numline,
                                     string_time) from err
        if matched.group('x1') is None:
            return time_span, None
        try:
            return time_span, Position(*map(int, matched.group(
                'x1', 'x2', 'y1', 'y2')))
        except ValueError as err:
            raise SubtitleParseError(str(err), self.actual_numline,
                                     string_time) from err

    def num_block (self, line):
        """Check the subtitle's number identifier lines."""
        if not line.strip():
            return False
        self.number = self.new_sub_num(line)
        return True

    def time_block (self, line):
        """Check the time lines."""
        if not line.strip():
            raise SubtitleParseError('Incomplete block, missing time line',
                                     self.actual_numline, line)
        self.time_span, self.position = self.match_time(line)
        self.lines = []
        return True

    def text_block (self, line):
        """Collect the text lines as they are, up to a blank line."""
        if not line.strip():
            self.flush_block()
            return True
        self.lines.append(line)
        return False

    def flush_block (self):
        self.document.blocks.append(SrtBlock(
            self.number, self.time_span, self.position, self.lines))
        self.clear_block()

    def parse (self):
        """Read all the lines of file_in and return a SrtDocument."""
        self.document = SrtDocument()
        self.actual_numline = 0
        self.clear_block()
        line_ending = line = None
        get_func = GetFunc(self.make_iter_blocks(self.num_block,
                                                 self.time_block,
                                                 self.text_block))
        for self.actual_numline, line in zip(itertools.count(1),
                                             self.file_in):
            if line_ending is None:
                line_ending = '\r\n' if line.endswith('\r\n') else '\n'
            get_func(line)
        if get_func.function == self.time_block:
            raise SubtitleParseError('Incomplete block at EOF',
                                     self.actual_numline, line)
        if get_func.function == self.text_block:
            self.flush_block()
            if self.IS_WARN:
                warnings.warn("Incomplete block at EOF",
                              IncompleteBlockWarning)
        self.document.line_ending = line_ending or '\n'
        return self.document

    def write (self, document):
        """Write *document* on file_out."""
        self.file_out.write(document.format())


class SubAdjuster:
    """
    Apply an AdjustConfig to the blocks of a SrtDocument, in place.
    Time ranges are checked against the times found in the file,
    before any adjustment.
    """
    def __init__ (self, config):
        self.config = config
        self.pivot = config.scale_pivot or 0

    @staticmethod
    def in_ranges (spans, ms):
        return any(span.contains(ms) for span in spans)

    def move_block (self, block):
        """Move *block* to the top or to the bottom of the screen."""
        start = block.time_span.start_ms
        if self.in_ranges(self.config.to_top, start):
            if block.position is not None:
                raise PositionOverrideConflictError(block)
            # replace any existing position tag
            if block.lines:
                block.lines[0] = TOP_TAG + RE_POSITION_TAG.sub(
                    '', block.lines[0], count=1)
        elif self.in_ranges(self.config.to_bottom, start):
            block.position = None
            if block.lines:
                block.lines[0] = RE_POSITION_TAG.sub('', block.lines[0],
                                                     count=1)

    def new_time (self, ms):
        """Return *ms* shifted, then scaled around the pivot."""
        ms += self.config.offset_ms
        if self.config.scale is not None:
            try:
                # int() truncates toward zero
                ms = self.pivot + int(self.config.scale * (ms - self.pivot))
            except OverflowError as err:
                raise TimeOverflowError(ms) from err
        return ms

    def new_time_span (self, time_span):
        if time_span.start_ms < self.config.offset_start_ms:
            return time_span
        return TimeSpan(self.new_time(time_span.start_ms),
                        self.new_time(time_span.end_ms))

    def main (self, document):
        """Adjust every block of *document*, returning it."""
        logger.info('Applying changes to the subtitle in memory.')
        for index, block in enumerate(document.blocks):
            if self.config.renumber:
                block.number = index + 1
            self.move_block(block)
            block.time_span = self.new_time_span(block.time_span)
        return document


class BackupFile:
    """Keep the original file aside (as path + suffix) while rewriting it."""
    def __init__ (self, path, suffix=BACKUP_SUFFIX):
        self.path = path
        self.filepath = path + suffix
        self.made = False

    def make (self):
        logger.info('Backing up file to %r', self.filepath)
        os.replace(self.path, self.filepath)
        self.made = True

    def restore (self):
        logger.info('Restoring %r', self.filepath)
        os.replace(self.filepath, self.path)
        self.made = False


###########
# M A I N #
###########

def adjust_file (path, config, backup, encoding='utf-8', errors='strict',
                 warn=False):
    """
    Read, adjust and rewrite the subtitle file at *path*.
    Nothing is touched on disk until the new text is ready; if
    writing fails, *backup* is restored before raising.
    """
    lines, encoding, bom = read_lines(path, encoding, errors)
    document = SrtSub(lines, warn=warn).parse()
    SubAdjuster(config).main(document)
    text = document.format()
    backup.make()
    try:
        write_to_disk(text, path, encoding, errors, bom)
    except BaseException:
        save_on_error(backup)
        raise


def main (argv=None):
    parser = get_parser()
    opts = parser.parse_args(argv)
    if opts.info:
        print(__doc__)
        return 0
    setup_logging(opts.verbose)
    try:
        codecs.lookup(opts.encoding)
    except LookupError as le:
        parser.error(str(le))
    try:
        config = resolve_options(opts)
    except OptionsError as err:
        parser.error(str(err))
    backup = BackupFile(opts.infile)
    try:
        if config.extract:
            extract_subtitles(opts.infile)
        else:
            adjust_file(opts.infile, config, backup, opts.encoding,
                        opts.enc_err, opts.is_warn)
    except (AdjustError, UnicodeError, OSError) as e:
        print("{err}: {msg}".format(err=e.__class__.__name__, msg=str(e)),
              file=sys.stderr)
        save_on_error(backup)
        return 1
    except KeyboardInterrupt:
        print('srtadjust: User Interrupt', file=sys.stderr)
        save_on_error(backup)
        return 1
    except Exception as e:
        print("Unknown error! surely a bug.\n{msg}".format(msg=str(e)),
              file=sys.stderr)
        save_on_error(backup)
        return 255
    return 0


if __name__ == '__main__':
    sys.exit(main())
