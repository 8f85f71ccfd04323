# flake8: noqa

__version__ = "0.1.0"


def parse_version(version):
    """
    '0.1.0.dev1' -> (0, 1, 0, 'dev1')
    '0.1.0' -> (0, 1, 0)
    """
    return tuple(int(p) if p.isdigit() else p for p in version.split("."))


VERSION = parse_version(__version__)
