import logging
import re

from syntaxnbt.types.errors import OutOfRangeError
from syntaxnbt.types.nbt import (
    DEFAULT_MAX_DEPTH, TagByte, TagByteArray, TagCompound, TagDouble,
    TagFloat, TagInt, TagIntArray, TagList, TagLong, TagLongArray, TagShort,
    TagString)
from syntaxnbt.types.string_reader import StringReader

logger = logging.getLogger(__name__)


class SNBTParser(object):
    """Convert SNBT text into tags.

    Example: {display:{Name:"{\\"text\\":\\"Excalibur\\"}"},Count:1b}
    """

    regexBoolean         = re.compile(r'''true|false''', re.IGNORECASE)
    regexInteger         = re.compile(r'''([-+]?(?:0|[1-9][0-9]*))([bsl]?)''', re.IGNORECASE)
    regexFloatInteger    = re.compile(r'''([-+]?[0-9]+)([fd])''', re.IGNORECASE)
    regexFloatIntegerExp = re.compile(r'''([-+]?[0-9]+e[-+]?[0-9]+)([fd]?)''', re.IGNORECASE)
    regexFloatDecimal    = re.compile(r'''([-+]?(?:[0-9]+[.][0-9]*|[.][0-9]+)(?:e[-+]?[0-9]+)?)([fd]?)''', re.IGNORECASE)

    integer_classes = {'b': TagByte, 's': TagShort, '': TagInt, 'l': TagLong}
    float_classes = {'f': TagFloat, 'd': TagDouble, '': TagDouble}
    array_classes = {'B': TagByteArray, 'I': TagIntArray, 'L': TagLongArray}

    def __init__(self, text):
        if isinstance(text, StringReader):
            self.reader = text
        else:
            self.reader = StringReader(text)

    def parse_key_string(self):
        logger.debug("parse_key_string at %d", self.reader.get_cursor())

        self.reader.skip_whitespace()
        if StringReader.is_quoted_string_start(self.reader.peek()):
            return self.reader.read_quoted_string()

        key = self.reader.read_unquoted_string()
        if not key:
            self.raise_error("Expected key in TAG_Compound")
        return key

    def parse_literal(self, literal_str):
        if self.regexBoolean.fullmatch(literal_str):
            return TagByte(literal_str.lower() == 'true')

        match = self.regexInteger.fullmatch(literal_str)
        if match:
            tag_class = self.integer_classes[match.group(2).lower()]
            try:
                return tag_class(int(match.group(1)))
            except OutOfRangeError:
                # Out of range numbers are kept as text
                return TagString(literal_str)

        for regex in (self.regexFloatInteger, self.regexFloatIntegerExp, self.regexFloatDecimal):
            match = regex.fullmatch(literal_str)
            if match:
                tag_class = self.float_classes[match.group(2).lower()]
                try:
                    return tag_class(float(match.group(1)))
                except OutOfRangeError:
                    return TagString(literal_str)

        return TagString(literal_str)

    def parse_any_tag(self, depth=DEFAULT_MAX_DEPTH):
        logger.debug("parse_any_tag at %d", self.reader.get_cursor())

        self.reader.skip_whitespace()
        if not self.reader.can_read():
            self.raise_error("Value expected")

        next_char = self.reader.peek()
        if next_char == '{':
            return self.parse_compound(depth)
        if next_char == '[':
            return self.parse_array(depth)
        if StringReader.is_quoted_string_start(next_char):
            return TagString(self.reader.read_quoted_string())

        literal_str = self.reader.read_unquoted_string()
        if not literal_str:
            self.raise_error("Value expected")
        return self.parse_literal(literal_str)

    def parse_array(self, depth=DEFAULT_MAX_DEPTH):
        if self.reader.peek(1) in self.array_classes and self.reader.peek(2) == ';':
            return self.parse_typed_numeric_array()
        return self.parse_non_numeric_array(depth)

    def parse_non_numeric_array(self, depth=DEFAULT_MAX_DEPTH):
        logger.debug("parse_non_numeric_array at %d", self.reader.get_cursor())

        self.advance_and_fail_if_next_is_not('[')
        nbt_list = TagList()

        self.reader.skip_whitespace()
        if self.reader.peek() == ']':
            self.reader.skip()
            return nbt_list
        if depth <= 0:
            self.raise_error("Maximum nesting depth exceeded")

        while True:
            self.reader.skip_whitespace()
            orig_pos = self.reader.get_cursor()
            new_value = self.parse_any_tag(depth - 1)

            if nbt_list.component_kind is not None and new_value.kind != nbt_list.component_kind:
                self.reader.set_cursor(orig_pos)
                self.raise_error(f"Expected {nbt_list.component_kind.tag_name} in TAG_List, "
                                 f"got {new_value.kind.tag_name}")

            nbt_list.add(new_value)
            # Lists and arrays tolerate one trailing comma
            if not self.seek_to_next_comma_delim_element() or self.reader.peek() == ']':
                break

        self.advance_and_fail_if_next_is_not(']')
        return nbt_list

    def parse_typed_numeric_array(self):
        logger.debug("parse_typed_numeric_array at %d", self.reader.get_cursor())

        self.advance_and_fail_if_next_is_not('[')
        array_class = self.array_classes[self.reader.read()]
        item_kind = array_class.element_class.kind
        self.reader.expect(';')

        values = []
        self.reader.skip_whitespace()
        if self.reader.peek() == ']':
            self.reader.skip()
            return array_class(values)

        while True:
            self.reader.skip_whitespace()
            orig_pos = self.reader.get_cursor()
            new_value = self.parse_any_tag(0)

            if new_value.kind != item_kind:
                self.reader.set_cursor(orig_pos)
                self.raise_error(f"Expected {item_kind.tag_name} in {array_class.kind.tag_name}, "
                                 f"got {new_value.kind.tag_name}")

            # Numeric arrays hold plain numbers, not tags
            values.append(new_value.value)
            if not self.seek_to_next_comma_delim_element() or self.reader.peek() == ']':
                break

        self.advance_and_fail_if_next_is_not(']')
        return array_class(values)

    def parse_compound(self, depth=DEFAULT_MAX_DEPTH):
        logger.debug("parse_compound at %d", self.reader.get_cursor())

        self.advance_and_fail_if_next_is_not('{')
        compound = TagCompound()

        self.reader.skip_whitespace()
        if self.reader.peek() == '}':
            self.reader.skip()
            return compound
        if depth <= 0:
            self.raise_error("Maximum nesting depth exceeded")

        while True:
            self.reader.skip_whitespace()
            orig_pos = self.reader.get_cursor()
            key = self.parse_key_string()

            if key in compound:
                self.reader.set_cursor(orig_pos)
                self.raise_error(f"Duplicate key {key!r} in TAG_Compound")

            self.advance_and_fail_if_next_is_not(':')
            compound.put(key, self.parse_any_tag(depth - 1))
            if not self.seek_to_next_comma_delim_element():
                break

        self.advance_and_fail_if_next_is_not('}')
        return compound

    def seek_to_next_comma_delim_element(self):
        self.reader.skip_whitespace()
        if self.reader.can_read() and self.reader.peek() == ',':
            self.reader.skip()
            self.reader.skip_whitespace()
            return True
        return False

    def advance_and_fail_if_next_is_not(self, char):
        self.reader.skip_whitespace()
        self.reader.expect(char)

    def expect_end(self):
        self.reader.skip_whitespace()
        if self.reader.can_read():
            self.raise_error("Trailing data")

    def raise_error(self, msg):
        raise self.reader.error(msg)


def parse(text, max_depth=DEFAULT_MAX_DEPTH):
    """Parses an SNBT value of any kind."""
    parser = SNBTParser(text.strip())
    tag = parser.parse_any_tag(max_depth)
    parser.expect_end()
    return tag


def parse_compound(text, max_depth=DEFAULT_MAX_DEPTH):
    """Parses SNBT text that must hold a single compound."""
    parser = SNBTParser(text.strip())
    tag = parser.parse_compound(max_depth)
    parser.expect_end()
    return tag


def stringify(tag, highlight=False, style=None, max_depth=DEFAULT_MAX_DEPTH):
    return tag.to_snbt(highlight=highlight, style=style, max_depth=max_depth)
