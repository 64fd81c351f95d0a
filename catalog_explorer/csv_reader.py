"""
Line-oriented CSV tokenization.

Handles double-quote enclosed fields with doubled-quote escaping. Fields that
span physical lines are not supported: each line is tokenized on its own.
"""

QUOTE = '"'
DELIMITER = ","


def split_lines(content: str) -> list[str]:
    """Split file content into non-blank lines, dropping carriage returns."""
    lines = []
    for line in content.split("\n"):
        line = line.rstrip("\r")
        if line.strip():
            lines.append(line)
    return lines


def tokenize_line(line: str) -> list[str]:
    """
    Split one CSV line into raw field strings.

    A doubled quote inside a quoted section is a literal quote. An unbalanced
    quote makes the remainder of the line quoted content. Fields are returned
    untrimmed.

    Example:
        >>> tokenize_line('a,"b,c",d')
        ['a', 'b,c', 'd']
    """
    fields: list[str] = []
    buffer: list[str] = []
    in_quotes = False
    i = 0
    length = len(line)

    while i < length:
        char = line[i]
        if char == QUOTE:
            if in_quotes and i + 1 < length and line[i + 1] == QUOTE:
                buffer.append(QUOTE)
                i += 2
                continue
            in_quotes = not in_quotes
        elif char == DELIMITER and not in_quotes:
            fields.append("".join(buffer))
            buffer = []
        else:
            buffer.append(char)
        i += 1

    fields.append("".join(buffer))
    return fields
