import enum
import re

_ansi_escape = re.compile(r'\x1b\[[0-9;]*m')


class TextFormatBase(object):
    """
    A single color or formatting option, known both by its in-game section
    code and by the terminal escape sequence that approximates it.
    """
    __slots__ = ('section_code', 'technical_name', 'ansi_code')

    def __init__(self, section_code, technical_name, ansi_code):
        self.section_code = section_code
        self.technical_name = technical_name
        self.ansi_code = ansi_code

    def __eq__(self, other):
        if isinstance(other, TextFormatBase):
            return self.section_code == other.section_code
        if isinstance(other, str):
            return other in (self.section_code, self.technical_name, self.ansi_code)
        return NotImplemented

    def __hash__(self):
        return hash(self.section_code)

    def __repr__(self):
        return f"TextFormatBase({self.section_code!r}, {self.technical_name!r})"


class TextFormats(enum.Enum):
    """
    Minecraft text color and style codes
    """
    black         = TextFormatBase("§0", "black",         "\x1b[0m\x1b[30m")
    dark_blue     = TextFormatBase("§1", "dark_blue",     "\x1b[0m\x1b[34m")
    dark_green    = TextFormatBase("§2", "dark_green",    "\x1b[0m\x1b[32m")
    dark_aqua     = TextFormatBase("§3", "dark_aqua",     "\x1b[0m\x1b[36m")
    dark_red      = TextFormatBase("§4", "dark_red",      "\x1b[0m\x1b[31m")
    dark_purple   = TextFormatBase("§5", "dark_purple",   "\x1b[0m\x1b[35m")
    gold          = TextFormatBase("§6", "gold",          "\x1b[0m\x1b[33m")
    gray          = TextFormatBase("§7", "gray",          "\x1b[0m\x1b[37m")
    dark_gray     = TextFormatBase("§8", "dark_gray",     "\x1b[0m\x1b[30;1m")
    blue          = TextFormatBase("§9", "blue",          "\x1b[0m\x1b[34;1m")
    green         = TextFormatBase("§a", "green",         "\x1b[0m\x1b[32;1m")
    aqua          = TextFormatBase("§b", "aqua",          "\x1b[0m\x1b[36;1m")
    red           = TextFormatBase("§c", "red",           "\x1b[0m\x1b[31;1m")
    light_purple  = TextFormatBase("§d", "light_purple",  "\x1b[0m\x1b[35;1m")
    yellow        = TextFormatBase("§e", "yellow",        "\x1b[0m\x1b[33;1m")
    white         = TextFormatBase("§f", "white",         "\x1b[0m\x1b[37;1m")

    obfuscated    = TextFormatBase("§k", "obfuscated",    "\x1b[7m")
    bold          = TextFormatBase("§l", "bold",          "\x1b[1m")
    strikethrough = TextFormatBase("§m", "strikethrough", "\x1b[9m")
    underlined    = TextFormatBase("§n", "underlined",    "\x1b[4m")
    italic        = TextFormatBase("§o", "italic",        "\x1b[3m")
    reset         = TextFormatBase("§r", "reset",         "\x1b[0m")


def get_format(match):
    """
    Return one piece of color information by section code, name or escape
    """
    for format in TextFormats:
        if format.value == match:
            return format.value
    raise KeyError("No such format code: {}".format(match))


def unformat_text(text):
    """
    Return the provided text without §-style format codes
    """
    result = text
    for format in TextFormats:
        result = result.replace(format.value.section_code, '')
    return result


def strip_ansi(text):
    """
    Return the provided text without terminal escape sequences
    """
    return _ansi_escape.sub('', text)
