import re

from syntaxnbt.types.errors import NBTSyntaxError

INT_MIN = -(1 << 31)
INT_MAX = (1 << 31) - 1


class StringReader(object):
    """
    Cursor over a string, shared by the SNBT and NBT path parsers.

    Modelled on brigadier's StringReader: every read advances the cursor,
    ``unread`` pushes the last character back and ``peek`` looks ahead
    without consuming anything.
    """
    regexUnquotedString = re.compile(r'''[-+._0-9A-Za-z]''')
    regexInt = re.compile(r'''[-+]?(0|[1-9][0-9]*)''')

    def __init__(self, string_in):
        if isinstance(string_in, type(self)):
            self.string = string_in.string
            self.cursor = string_in.cursor
        elif isinstance(string_in, str):
            self.string = string_in
            self.cursor = 0
        else:
            raise TypeError('Cannot parse type ' + str(type(string_in)))

    def __len__(self):
        return len(self.string)

    def get_string(self):
        return self.string

    def get_cursor(self):
        return self.cursor

    def set_cursor(self, cursor):
        self.cursor = cursor

    def get_remaining_length(self):
        return len(self.string) - self.cursor

    def get_read(self):
        """
        Return the part of the source string that's already been read
        """
        return self.string[:self.cursor]

    def get_remaining(self):
        return self.string[self.cursor:]

    def can_read(self, length=1):
        return self.cursor + length <= len(self.string)

    def peek(self, offset=0):
        """Returns the character *offset* places ahead, or '' past the end."""
        index = self.cursor + offset
        if 0 <= index < len(self.string):
            return self.string[index]
        return ''

    def read(self):
        if not self.can_read():
            raise self.error("Unexpected end of input")
        self.cursor += 1
        return self.string[self.cursor - 1]

    def skip(self):
        self.cursor += 1

    def unread(self):
        """Pushes the last character read back onto the input."""
        if self.cursor > 0:
            self.cursor -= 1

    @classmethod
    def is_quoted_string_start(cls, c):
        return c == "'" or c == '"'

    @classmethod
    def is_allowed_in_unquoted_string(cls, c):
        return bool(c) and bool(cls.regexUnquotedString.fullmatch(c))

    def skip_whitespace(self):
        while self.can_read() and self.peek().isspace():
            self.skip()

    def read_unquoted_string(self, allowed=None):
        """
        Reads characters for as long as *allowed* accepts them. Defaults to
        the SNBT bare-token alphabet ``[-+._0-9A-Za-z]``.
        """
        if allowed is None:
            allowed = self.is_allowed_in_unquoted_string
        start = self.cursor
        while self.can_read() and allowed(self.peek()):
            self.skip()
        return self.string[start:self.cursor]

    def read_quoted_string(self):
        if not self.can_read():
            raise self.error("Expected quoted string")
        nxt = self.peek()
        if not self.is_quoted_string_start(nxt):
            raise self.error(f"Expected quotes to begin string, got {nxt!r}")
        self.skip()
        return self.read_string_until(nxt)

    def read_string_until(self, terminator):
        result = []
        while self.can_read():
            c = self.read()
            if c == '\\':
                if not self.can_read():
                    break
                c = self.read()
                if c not in '"\'\\':
                    raise self.error(f"Illegal escape sequence '\\{c}'")
                result.append(c)
            elif c == terminator:
                return ''.join(result)
            elif c == '\r' or c == '\n':
                raise self.error("Illegal line terminator in string")
            else:
                result.append(c)

        raise self.error("Expected end quote")

    def read_string(self, allowed=None):
        if self.can_read() and self.is_quoted_string_start(self.peek()):
            return self.read_quoted_string()
        return self.read_unquoted_string(allowed)

    def read_int(self):
        """Reads a base 10 integer that fits in 32 signed bits."""
        start = self.cursor
        number = self.read_unquoted_string()
        if not number:
            raise self.error("Expected integer")
        if not self.regexInt.fullmatch(number):
            self.cursor = start
            raise self.error(f"Could not parse {number!r} as an integer")
        value = int(number)
        if not INT_MIN <= value <= INT_MAX:
            self.cursor = start
            raise self.error(f"Integer {number} is out of 32-bit range")
        return value

    def expect(self, c):
        if not self.can_read() or self.peek() != c:
            raise self.error(f"{c!r} expected")
        self.skip()

    def error(self, message):
        """Builds a syntax error pointing at the current cursor position."""
        return NBTSyntaxError(message, self.cursor, self.get_read()[-10:])
