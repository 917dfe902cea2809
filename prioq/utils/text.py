class TextColor:
    HEADER = '\033[95m'
    OKBLUE = '\033[94m'
    OKGREEN = '\033[92m'
    WARNING = '\033[93m'
    FAIL = '\033[91m'
    ENDC = '\033[0m'
    BOLD = '\033[1m'


def fmt_precision(precision, max_precision=.05):
    """Get interval precision formatted as percents with color.
    """
    if precision > max_precision:
        color = TextColor.WARNING
    else:
        color = TextColor.OKGREEN
    return highlight(f'{precision * 100:.2f}%', color)


def highlight(s, *colors):
    """Return a string with highlighted value.
    """
    colors_str = "".join(colors)
    return f'{colors_str}{s}{TextColor.ENDC}'


def pluralize(n):
    return '' if n == 1 else 's'
